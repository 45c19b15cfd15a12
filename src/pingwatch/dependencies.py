"""FastAPI dependencies wiring the engine components to request handlers."""
from fastapi import Depends

from pingwatch.database import get_session_factory
from pingwatch.notifier import NotificationDispatcher
from pingwatch.recorder import PingRecorder
from pingwatch.repository import CheckRepository, IntegrationStore


def get_repository() -> CheckRepository:
    return CheckRepository(get_session_factory())


def get_integration_store() -> IntegrationStore:
    return IntegrationStore(get_session_factory())


def get_dispatcher(
    repository: CheckRepository = Depends(get_repository),
    integrations: IntegrationStore = Depends(get_integration_store),
) -> NotificationDispatcher:
    return NotificationDispatcher(integrations, repository)


def get_recorder(
    repository: CheckRepository = Depends(get_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PingRecorder:
    return PingRecorder(repository, dispatcher)
