from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from storage.records import (
    COMPLETED,
    Document,
    DocumentCategory,
    Employee,
    EmployeeOnboardingRecord,
    Event,
    OnboardingProgress,
    OnboardingStep,
    ReportDashboard,
    TimeOffBalance,
)


_log = logging.getLogger("storage")


def progress_percentage(records: Sequence[Any]) -> int:
    total = len(records)
    if total == 0:
        return 0
    done = sum(1 for r in records if r.status == COMPLETED)
    # Half-up, so 12.5 -> 13 like the portal front-end.
    return int(math.floor(100 * done / total + 0.5))


class Storage(ABC):
    """Repository contract shared by the in-memory and SQL backends.

    Point lookups and updates return ``None`` when the target is absent and
    deletes return ``False``; neither raises. A progress record whose step is
    missing raises ``StorageIntegrityError`` when read.
    """

    backend = "abstract"

    # --- identity -------------------------------------------------------

    @abstractmethod
    def list_users(self) -> list[Employee]: ...

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[Employee]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[Employee]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[Employee]: ...

    @abstractmethod
    def create_user(self, fields: Mapping[str, Any]) -> Employee: ...

    @abstractmethod
    def update_user(self, user_id: int, changes: Mapping[str, Any]) -> Optional[Employee]: ...

    # --- onboarding steps -----------------------------------------------

    @abstractmethod
    def list_onboarding_steps(self) -> list[OnboardingStep]: ...

    @abstractmethod
    def get_onboarding_step(self, step_id: int) -> Optional[OnboardingStep]: ...

    @abstractmethod
    def create_onboarding_step(self, fields: Mapping[str, Any]) -> OnboardingStep: ...

    # --- per-employee progress ------------------------------------------

    @abstractmethod
    def list_onboarding_progress(self, user_id: int) -> list[OnboardingProgress]: ...

    @abstractmethod
    def create_onboarding_record(self, fields: Mapping[str, Any]) -> EmployeeOnboardingRecord: ...

    @abstractmethod
    def set_onboarding_status(
        self, record_id: int, status: str, completed_at: Optional[datetime] = None
    ) -> Optional[EmployeeOnboardingRecord]: ...

    def percent_complete(self, user_id: int) -> int:
        return progress_percentage(self.list_onboarding_progress(user_id))

    # --- documents ------------------------------------------------------

    @abstractmethod
    def list_documents(self) -> list[Document]: ...

    @abstractmethod
    def list_documents_for_user(self, user_id: int) -> list[Document]:
        """Documents the user uploaded plus every public document, newest first."""

    @abstractmethod
    def list_documents_by_category(self, category_id: int) -> list[Document]: ...

    @abstractmethod
    def get_document(self, document_id: int) -> Optional[Document]: ...

    @abstractmethod
    def create_document(self, fields: Mapping[str, Any]) -> Document: ...

    @abstractmethod
    def delete_document(self, document_id: int) -> bool: ...

    # --- document categories --------------------------------------------

    @abstractmethod
    def list_document_categories(self) -> list[DocumentCategory]: ...

    @abstractmethod
    def get_document_category(self, category_id: int) -> Optional[DocumentCategory]: ...

    @abstractmethod
    def create_document_category(self, fields: Mapping[str, Any]) -> DocumentCategory: ...

    # --- events ---------------------------------------------------------

    @abstractmethod
    def list_events(self) -> list[Event]: ...

    @abstractmethod
    def get_event(self, event_id: int) -> Optional[Event]: ...

    @abstractmethod
    def create_event(self, fields: Mapping[str, Any]) -> Event: ...

    def list_events_for_user(self, user_id: int) -> list[Event]:
        # Events carry no audience yet; every employee sees the full calendar.
        _log.debug("events for user=%s resolved to the full calendar", user_id)
        return self.list_events()

    # --- time-off -------------------------------------------------------

    @abstractmethod
    def get_time_off_balance(self, user_id: int) -> Optional[TimeOffBalance]: ...

    @abstractmethod
    def create_time_off_balance(self, fields: Mapping[str, Any]) -> TimeOffBalance: ...

    @abstractmethod
    def update_time_off_balance(self, user_id: int, changes: Mapping[str, Any]) -> Optional[TimeOffBalance]: ...

    # --- dashboards -----------------------------------------------------

    @abstractmethod
    def list_dashboards(self, user_id: int) -> list[ReportDashboard]: ...

    @abstractmethod
    def get_dashboard(self, dashboard_id: int) -> Optional[ReportDashboard]: ...

    def get_default_dashboard(self, user_id: int) -> Optional[ReportDashboard]:
        for d in self.list_dashboards(user_id):
            if d.is_default:
                return d
        return None

    @abstractmethod
    def create_dashboard(self, fields: Mapping[str, Any]) -> ReportDashboard: ...

    @abstractmethod
    def update_dashboard(self, dashboard_id: int, changes: Mapping[str, Any]) -> Optional[ReportDashboard]: ...

    @abstractmethod
    def delete_dashboard(self, dashboard_id: int) -> bool: ...

    # --- lifecycle ------------------------------------------------------

    def close(self) -> None:
        return None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
