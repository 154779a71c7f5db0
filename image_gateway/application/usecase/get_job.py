"""Get Job Use Case - Application Layer"""

from ...domain.entity.generation import GenerationJob
from ...domain.exceptions import JobAccessDeniedError, JobNotFoundError
from ...domain.repository.job_repository import JobRepository


class GetJobUseCase:
    """Fetch one generation job owned by the requesting user."""

    def __init__(self, jobs: JobRepository):
        self._jobs = jobs

    async def execute(self, user_id: str, job_id: str) -> GenerationJob:
        """
        Raises:
            JobNotFoundError: no job with this id
            JobAccessDeniedError: the job belongs to another user
        """
        job = await self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.user_id != user_id:
            raise JobAccessDeniedError(job_id)
        return job
