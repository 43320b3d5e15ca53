"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from booth_pipeline.api.models import NotifyRequest, SetResponseRequest, StartJobRequest
from booth_pipeline.app_logging import configure_logging
from booth_pipeline.containers import AppContainer
from booth_pipeline.domain.errors import PipelineError
from booth_pipeline.domain.jobs import JobRecord
from booth_pipeline.services.jobs import public_error_message


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(
        request: Request, exc: PipelineError
    ) -> JSONResponse:
        logger.warning(
            "Request rejected",
            extra={"path": request.url.path, "code": exc.code, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"code": exc.code, "message": public_error_message(exc.code)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/projects/{project_id}/sessions/{session_id}/responses")
    async def set_response(
        project_id: str, session_id: str, payload: SetResponseRequest, request: Request
    ) -> dict[str, object]:
        """Record a guest's answer for one step."""
        state_container: AppContainer = request.app.state.container
        stored = state_container.session_service.set_response(
            project_id,
            session_id,
            step_id=payload.step_id,
            step_name=payload.step_name,
            step_type=payload.step_type,
            value=payload.value,
            context=payload.context,
        )
        return stored.to_dict()

    @app.post("/projects/{project_id}/jobs", status_code=status.HTTP_202_ACCEPTED)
    async def start_job(
        project_id: str,
        payload: StartJobRequest,
        request: Request,
        background_tasks: BackgroundTasks,
    ) -> dict[str, object]:
        """Snapshot a completed session and run its transform in the background."""
        state_container: AppContainer = request.app.state.container
        job = state_container.pipeline.start_job(project_id, payload.session_id)
        background_tasks.add_task(state_container.pipeline.run_job, project_id, job.id)
        return job_view(job)

    @app.get("/projects/{project_id}/jobs/{job_id}")
    async def get_job(
        project_id: str, job_id: str, request: Request
    ) -> dict[str, object]:
        """Return the guest-facing status of a job."""
        state_container: AppContainer = request.app.state.container
        job = state_container.job_service.get_job(project_id, job_id)
        if job is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return job_view(job)

    @app.post("/projects/{project_id}/jobs/{job_id}/cancel")
    async def cancel_job(
        project_id: str, job_id: str, request: Request
    ) -> dict[str, object]:
        """Cancel a job that has not finished."""
        state_container: AppContainer = request.app.state.container
        job = state_container.pipeline.cancel_job(project_id, job_id)
        if job is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return job_view(job)

    @app.post(
        "/projects/{project_id}/jobs/{job_id}/notifications",
        status_code=status.HTTP_202_ACCEPTED,
    )
    async def notify(
        project_id: str, job_id: str, payload: NotifyRequest, request: Request
    ) -> dict[str, str]:
        """Queue the result email for a guest."""
        state_container: AppContainer = request.app.state.container
        task = state_container.notification_service.notify(
            project_id, job_id, payload.email
        )
        return {"status": "queued", "format": task.format.value}

    return app


def job_view(job: JobRecord) -> dict[str, object]:
    """Serialize a job for guests; the snapshot stays server-side."""
    return {
        "id": job.id,
        "sessionId": job.session_id,
        "status": job.status.value,
        "progress": job.progress.to_dict() if job.progress else None,
        "output": job.output.to_dict() if job.output else None,
        "error": job.error.to_dict() if job.error else None,
        "createdAt": job.created_at,
        "updatedAt": job.updated_at,
        "startedAt": job.started_at,
        "completedAt": job.completed_at,
    }
