"""
Detection rule loading and validation.

Rules live in YAML files under statement_ingest/rules/. They hold every
keyword list the pipeline matches against, so new issuer variants can be
supported without code changes.
"""
import yaml
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Literal, Optional, Union
import logging

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..models.schema import Role

logger = logging.getLogger(__name__)

RULES_DIR = Path(__file__).parent.parent / "rules"
DEFAULT_RULES_FILE = RULES_DIR / "default.yaml"


class ColumnRule(BaseModel):
    """A (predicate, role) pair used to classify one header cell."""
    role: Role
    match: Literal["exact", "contains"] = "contains"
    keywords: List[str]

    def matches(self, header: str) -> bool:
        if self.match == "exact":
            return header in self.keywords
        lowered = header.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords)


class HeaderKeywords(BaseModel):
    date: List[str]
    amount: List[str]


class TypeHints(BaseModel):
    """Cell values of a type-hint column, matched by substring."""
    income: List[str] = Field(default_factory=list)
    expense: List[str] = Field(default_factory=list)

    def resolve(self, value: str) -> Optional[str]:
        """Transaction type a hint cell names, income checked first."""
        lowered = value.lower()
        if any(keyword.lower() in lowered for keyword in self.income):
            return 'income'
        if any(keyword.lower() in lowered for keyword in self.expense):
            return 'expense'
        return None


class ParserRules(BaseModel):
    """Validated contents of a rules YAML file."""
    rules_id: str
    scan_limit: int = 50
    max_subheader_rows: int = 5
    section_markers: List[str]
    detailed_markers: List[str] = Field(default_factory=list)
    header_keywords: HeaderKeywords
    column_rules: List[ColumnRule]
    grand_total_keywords: List[str] = Field(default_factory=list)
    subtotal_keywords: List[str] = Field(default_factory=list)
    type_hints: TypeHints = Field(default_factory=TypeHints)

    @field_validator('scan_limit', 'max_subheader_rows')
    @classmethod
    def validate_positive(cls, v):
        if v < 0:
            raise ValueError(f"Must not be negative: {v}")
        return v

    @field_validator('column_rules')
    @classmethod
    def validate_column_rules(cls, v):
        if not any(rule.role == Role.DATE for rule in v):
            raise ValueError("Column rules must classify a date column")
        return v

    def rules_for(self, role: Role) -> List[ColumnRule]:
        return [rule for rule in self.column_rules if rule.role == role]

    def keywords_for(self, role: Role) -> List[str]:
        """Every keyword any rule uses for `role`."""
        keywords = []
        for rule in self.rules_for(role):
            keywords.extend(rule.keywords)
        return keywords


def load_rules(path: Optional[Union[str, Path]] = None) -> ParserRules:
    """
    Load and validate a rules file.

    Args:
        path: YAML file to load; the bundled default when omitted

    Returns:
        ParserRules
    """
    if path is None:
        return default_rules()
    return _read_rules(Path(path))


@lru_cache(maxsize=1)
def default_rules() -> ParserRules:
    """The bundled Korean bank/card rules, loaded once."""
    return _read_rules(DEFAULT_RULES_FILE)


def _read_rules(path: Path) -> ParserRules:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading rules {path}: {e}")
        raise

    try:
        rules = ParserRules.model_validate(data)
    except ValidationError as e:
        logger.error(f"Invalid rules file {path}: {e}")
        raise

    logger.debug(f"Loaded rules: {rules.rules_id}")
    return rules


def list_rules() -> Dict[str, Path]:
    """Rules files bundled with the package, keyed by rules_id."""
    available = {}
    for yaml_file in sorted(RULES_DIR.glob("*.yaml")):
        try:
            available[_read_rules(yaml_file).rules_id] = yaml_file
        except (OSError, yaml.YAMLError, ValidationError):
            continue
    return available
