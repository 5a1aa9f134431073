"""A storage interface for the photo attachments of the zones"""

import abc


class IAttachmentStore(abc.ABC):
    """A storage interface for the photos attached to the shapes of a project.
    An attachment is described by a dict with at least `name` and `url`."""

    @abc.abstractmethod
    def list_attachments(self, project_id: str, shape_id: str) -> list[dict]:
        """An abstract method defining the interface for listing the
        attachments of a shape"""

    @abc.abstractmethod
    def upload_attachment(self, project_id: str, shape_id: str,
                          filename: str, content: bytes) -> dict:
        """An abstract method defining the interface for an attachment upload"""
