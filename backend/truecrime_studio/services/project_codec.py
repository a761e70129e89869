"""
Project <-> stored string conversion.

The collection is a single JSON array. Decoding validates each element on its
own so one damaged record does not take the rest of the collection with it.
"""
import json
from typing import Any, Iterable, List, Optional

import structlog
from pydantic import ValidationError

from truecrime_studio.schemas.project import Project
from truecrime_studio.services.kv_store import entry_size

logger = structlog.get_logger()


def project_to_dict(project: Project) -> dict[str, Any]:
    return project.model_dump(mode="json", by_alias=True)


def encode_project(project: Project) -> str:
    return json.dumps(project_to_dict(project), separators=(",", ":"))


def decode_project(payload: Any) -> Optional[Project]:
    """Validate one stored element; None when it does not look like a project."""
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            logger.warning("codec.project_unparseable", error=str(e))
            return None
    if not isinstance(payload, dict):
        logger.warning("codec.project_not_an_object", kind=type(payload).__name__)
        return None
    try:
        return Project.model_validate(payload)
    except ValidationError as e:
        logger.warning(
            "codec.project_invalid",
            project_id=payload.get("id"),
            errors=e.error_count(),
        )
        return None


def encode_collection(projects: Iterable[Project]) -> str:
    return json.dumps([project_to_dict(p) for p in projects], separators=(",", ":"))


def decode_collection(raw: Optional[str]) -> List[Project]:
    """
    Decode the stored collection.

    Returns an empty list when the value is absent, unparseable or not an
    array. Elements that fail validation are skipped.
    """
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.error("codec.collection_unparseable", error=str(e), length=len(raw))
        return []
    if not isinstance(data, list):
        logger.error("codec.collection_not_a_list", kind=type(data).__name__)
        return []

    projects: List[Project] = []
    for index, item in enumerate(data):
        project = decode_project(item)
        if project is None:
            logger.warning("codec.record_skipped", index=index)
            continue
        projects.append(project)
    return projects


def record_size(key: str, value: str) -> int:
    return entry_size(key, value)


def project_size(project: Project) -> int:
    """Serialized size of a single project, as it contributes to the collection."""
    return len(encode_project(project))
