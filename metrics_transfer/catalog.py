from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
import re


@dataclass(frozen=True)
class MetricDefinition:
    key: str
    query: str
    params: Mapping[str, object] = field(default_factory=dict)


ACTIVE_MACHINES_QUERY = """
SELECT count(*) FROM machine m
WHERE to_timestamp(m.last_commit_solution) >= DATE(NOW())
"""

PROJECT_ACTIVE_MACHINES_QUERY = """
SELECT count(*) FROM machine m
WHERE to_timestamp(m.last_commit_solution) >= DATE(NOW())
  AND m.project = :project
"""

LOST_USERS_QUERY = """
WITH machine_activity AS (
    SELECT ma.main_user_id, MAX(m.last_commit_solution) AS max_last_commit_solution
    FROM miner_account ma
    JOIN machine m ON m.miner_account_id = ma.id
    GROUP BY ma.main_user_id
)
SELECT COUNT(DISTINCT u.email) FROM public."user" u
LEFT JOIN machine_activity ma ON ma.main_user_id = u.id
WHERE to_timestamp(ma.max_last_commit_solution) < (DATE_TRUNC('day', NOW()) - INTERVAL '1 days')
"""

# Users invited through a channel tag of the project; "default" is the organic sign-up tag.
CHANNEL_ACTIVE_MACHINES_QUERY = """
WITH channel_accounts AS (
    SELECT ma.id
    FROM miner_account ma
    LEFT JOIN public."user" u ON u.id = ma.main_user_id
    LEFT JOIN invitation_code ic ON ic.id = u.invitation_code_id
    WHERE ic.tag IN (
        SELECT tag
        FROM bonus_obj
        WHERE user_id IS NULL
          AND project = :project
          AND tag != 'default'
    )
)
SELECT count(*) FROM machine m
JOIN channel_accounts ca ON m.miner_account_id = ca.id
WHERE to_timestamp(m.last_commit_solution) >= DATE(NOW())
"""

DEFAULT_PROJECTS = ("ALEO", "Quai_Garden")

_KEY_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")


def project_tag(project: str) -> str:
    return re.sub(r"[^a-z0-9_]", "_", project.strip().lower())


def build_catalog(projects: Iterable[str] = DEFAULT_PROJECTS) -> tuple[MetricDefinition, ...]:
    """Return the ordered metric catalog for the tracked projects.

    Per-project metrics share one query and differ only by the bound
    ``project`` parameter; their keys are suffixed with the lower-cased tag.
    """
    projects = tuple(projects)

    definitions = [MetricDefinition(key="active_machines_count", query=ACTIVE_MACHINES_QUERY)]
    definitions.extend(
        MetricDefinition(
            key=f"active_machines_count_{project_tag(project)}",
            query=PROJECT_ACTIVE_MACHINES_QUERY,
            params={"project": project},
        )
        for project in projects
    )
    definitions.append(MetricDefinition(key="lost_users_count", query=LOST_USERS_QUERY))
    definitions.extend(
        MetricDefinition(
            key=f"active_channel_machines_count_{project_tag(project)}",
            query=CHANNEL_ACTIVE_MACHINES_QUERY,
            params={"project": project},
        )
        for project in projects
    )

    validate_catalog(definitions)
    return tuple(definitions)


def validate_catalog(definitions: Iterable[MetricDefinition]) -> None:
    seen: set[str] = set()
    for definition in definitions:
        # Keys become table names in the destination insert.
        if not _KEY_PATTERN.match(definition.key):
            raise ValueError(f"metric key is not a valid table name: {definition.key!r}")
        if definition.key in seen:
            raise ValueError(f"duplicate metric key: {definition.key}")
        seen.add(definition.key)
