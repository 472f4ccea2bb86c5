"""
Block type registry and block persistence.
"""

from collections import OrderedDict
from typing import Any, Dict, List, Optional, Type, Union

from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import DuplicateException, FormValidationException, NotFoundException, ValidationException
from ..helpers import machine_name as make_machine_name
from ..logging_config import get_logger
from ..models import Block
from .types import CORE_BLOCK_TYPES, BlockType

logger = get_logger(__name__)

VISIBILITY_MODES = ("all", "show", "hide")
BODY_FORMATS = ("html", "markdown", "plain")
_BLOCK_COLUMNS = (
    "admin_title",
    "title",
    "show_title",
    "body",
    "body_format",
    "region",
    "theme",
    "weight",
    "is_published",
    "visibility_pages",
    "visibility_mode",
    "visibility_roles",
    "css_class",
    "css_id",
)


class BlockManager:
    """
    Registry of block types plus CRUD and placement of blocks.

    Attributes:
        db: Database session
        types: Registered block types by id
    """

    def __init__(self, db: Session, register_core: bool = True):
        self.db = db
        self.types: "OrderedDict[str, BlockType]" = OrderedDict()
        if register_core:
            for block_type in CORE_BLOCK_TYPES:
                self.register_type(block_type)

    # ==================== TYPES ====================

    def register_type(self, block_type: Union[BlockType, Type[BlockType]]) -> None:
        instance = block_type() if isinstance(block_type, type) else block_type
        if not instance.id:
            raise ValueError("Block type must define an id")
        self.types[instance.id] = instance

    def get_types(self) -> List[BlockType]:
        return list(self.types.values())

    def get_types_grouped(self) -> Dict[str, List[BlockType]]:
        """Block types grouped by category, categories in alphabetical order."""
        grouped: Dict[str, List[BlockType]] = {}
        for block_type in self.types.values():
            grouped.setdefault(block_type.category, []).append(block_type)
        return {category: grouped[category] for category in sorted(grouped)}

    def get_type(self, type_id: str) -> Optional[BlockType]:
        return self.types.get(type_id)

    def has_type(self, type_id: str) -> bool:
        return type_id in self.types

    # ==================== BLOCKS ====================

    def get_block(self, block_id: int) -> Optional[Block]:
        return self.db.query(Block).filter(Block.id == block_id).first()

    def get_block_by_name(self, machine_name: str) -> Optional[Block]:
        return self.db.query(Block).filter(Block.machine_name == machine_name).first()

    def list_blocks(self, region: Optional[str] = None) -> List[Block]:
        query = self.db.query(Block)
        if region is not None:
            query = query.filter(Block.region == region)
        return query.order_by(Block.region, Block.weight, Block.id).all()

    def _require_type(self, type_id: str) -> BlockType:
        block_type = self.get_type(type_id)
        if block_type is None:
            raise NotFoundException("Block type", type_id)
        return block_type

    def _apply(self, block: Block, data: Dict[str, Any]) -> None:
        for column in _BLOCK_COLUMNS:
            if column in data:
                setattr(block, column, data[column])
        if block.visibility_mode not in VISIBILITY_MODES:
            raise ValidationException("visibility_mode", block.visibility_mode, "must be all, show or hide")
        if block.body_format not in BODY_FORMATS:
            raise ValidationException("body_format", block.body_format, "must be html, markdown or plain")
        if block.region and block.region not in settings.get_theme_regions():
            raise ValidationException("region", block.region, "unknown theme region")

    def _type_settings(self, block_type: BlockType, data: Dict[str, Any], body: Optional[str]) -> Dict[str, Any]:
        block_settings = dict(data.get("settings") or {})
        errors = block_type.validate(block_settings)
        # A block body can stand in for a missing content setting
        if body and "content" in errors:
            errors.pop("content")
        if errors:
            raise FormValidationException({name: [message] for name, message in errors.items()})
        return block_type.process_data(block_settings)

    def create_block(self, data: Dict[str, Any], author_id: Optional[int] = None) -> Block:
        """
        Create a block.

        Args:
            data: Block columns plus ``block_type`` and type ``settings``
            author_id: Creating user

        Returns:
            Saved block

        Raises:
            NotFoundException: If the block type is unknown
            FormValidationException: If the type settings are invalid
            DuplicateException: If the machine name is taken
        """
        block_type = self._require_type(data.get("block_type", "text"))
        admin_title = data.get("admin_title") or data.get("title") or ""
        if not admin_title:
            raise ValidationException("admin_title", admin_title, "is required")

        name = data.get("machine_name") or make_machine_name(admin_title) or "block"
        if self.get_block_by_name(name):
            raise DuplicateException("Block", "machine_name", name)

        block = Block(
            admin_title=admin_title,
            machine_name=name,
            block_type=block_type.id,
            body_format="html",
            visibility_mode="all",
            visibility_pages=[],
            visibility_roles=[],
            author_id=author_id,
        )
        self._apply(block, {**data, "admin_title": admin_title})
        block.settings = self._type_settings(block_type, data, block.body)

        self.db.add(block)
        self.db.commit()
        self.db.refresh(block)
        logger.info(
            f"Block created: {block.machine_name}",
            extra={"extra_fields": {"block_id": block.id, "block_type": block.block_type}},
        )
        return block

    def update_block(self, block: Block, data: Dict[str, Any]) -> Block:
        """Update columns and, when given, the type settings of a block."""
        self._apply(block, data)
        if "settings" in data:
            block.settings = self._type_settings(self._require_type(block.block_type), data, block.body)
        self.db.commit()
        self.db.refresh(block)
        logger.info(f"Block updated: {block.machine_name}", extra={"extra_fields": {"block_id": block.id}})
        return block

    def delete_block(self, block: Block) -> None:
        block_id = block.id
        self.db.delete(block)
        self.db.commit()
        logger.info(f"Block deleted: {block_id}", extra={"extra_fields": {"block_id": block_id}})

    def place_block(self, block: Block, region: Optional[str], weight: int = 0) -> Block:
        """
        Move a block into a region, or out of every region with ``None``.

        Raises:
            ValidationException: If the region is unknown or refused by the block type
        """
        if region is not None:
            if region not in settings.get_theme_regions():
                raise ValidationException("region", region, "unknown theme region")
            block_type = self.get_type(block.block_type)
            if block_type is not None and not block_type.can_be_placed_in_region(region):
                raise ValidationException("region", region, f"{block_type.label} cannot be placed here")
        block.region = region
        block.weight = weight
        self.db.commit()
        self.db.refresh(block)
        return block

    def blocks_for_region(self, region: str, theme: Optional[str] = None) -> List[Block]:
        """Published blocks of a region ordered by weight."""
        query = self.db.query(Block).filter(Block.region == region, Block.is_published.is_(True))
        if theme:
            query = query.filter((Block.theme == theme) | (Block.theme.is_(None)))
        return query.order_by(Block.weight, Block.id).all()

    def render_block(self, block: Block, context: Optional[Dict[str, Any]] = None) -> str:
        """Inner HTML of a block from its type, empty for unknown types."""
        block_type = self.get_type(block.block_type)
        if block_type is None:
            logger.warning(f"Unknown block type: {block.block_type}", extra={"extra_fields": {"block_id": block.id}})
            return ""
        return block_type.render(block, context or {})
