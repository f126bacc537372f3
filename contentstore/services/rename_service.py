"""Rename with metadata repair."""

from common.logging_config import get_logger
from common.types import StoreResult
from contentstore.ledger import MetadataLedger
from contentstore.metadata_document import (
    UnparseableDocument,
    new_document,
    parse_metadata_document,
)
from contentstore.utils import content_not_found

logger = get_logger(__name__)


class RenameService:
    def __init__(self, ledger: MetadataLedger):
        self.ledger = ledger

    async def rename_content(self, content_id: str, new_name: str) -> StoreResult:
        """
        Set the fileName of a content's metadata document.

        Every other key of a parseable document is kept in place. A document
        that cannot be parsed as a JSON object is replaced by one holding
        only the new name. Empty names are accepted as given.

        Args:
            content_id: Content to rename
            new_name: New file name

        Returns:
            StoreResult; error "Content not found: <id>" for an unknown id
        """
        async with self.ledger.exclusive(content_id):
            record = await self.ledger.get_metadata(content_id)
            if record is None:
                logger.warning(f"Rename requested for unknown content {content_id}")
                return StoreResult(success=False, error=content_not_found(content_id))

            document = parse_metadata_document(record.additional_metadata)
            if isinstance(document, UnparseableDocument):
                if document.raw is not None:
                    logger.info(f"Replacing unparseable metadata of content {content_id} during rename")
                updated = new_document(new_name)
            else:
                updated = document.with_file_name(new_name)

            await self.ledger.replace_additional_metadata(content_id, updated.serialize())

        logger.info(f"Renamed content {content_id}")
        return StoreResult(success=True)
