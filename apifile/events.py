"""Observer interface for upload progress and status."""

from apifile.types import ProgressEvent, SessionState, UploadOutcome


class UploadObserver:
    """
    Receives notifications from an UploadSession.

    Subclass and override the hooks you need; the defaults do nothing.
    """

    def on_state_change(self, upload_id: str, state: SessionState) -> None:
        pass

    def on_progress(self, upload_id: str, event: ProgressEvent) -> None:
        pass

    def on_complete(self, outcome: UploadOutcome) -> None:
        pass
