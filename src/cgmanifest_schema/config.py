from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

SCHEMA_URL = "https://json.schemastore.org/component-detection-manifest.json"
MANIFEST_FILENAME = "cgmanifest.json"

DEFAULT_PR_BODY_TEMPLATE = Path(__file__).with_name("templates") / "pull_request_body.md"


@dataclass(frozen=True)
class CommitIdentity:
    name: str
    email: str

    def as_payload(self) -> dict:
        return {"name": self.name, "email": self.email}


@dataclass(frozen=True)
class CampaignConfig:
    """
    Fixed names and identities of the campaign. The wrapper and the
    orchestrator only read these; tests build their own instances.
    """
    org: str = "microsoft"
    manifest_filename: str = MANIFEST_FILENAME
    schema_url: str = SCHEMA_URL

    branch_name: str = "cgmanifest-schema"
    pr_title: str = "Add `$schema` to `cgmanifest.json`"
    pr_body_template: Path = DEFAULT_PR_BODY_TEMPLATE
    commit_message: str = "Add `$schema` to `cgmanifest.json`"
    commit_identity: CommitIdentity = field(
        default_factory=lambda: CommitIdentity(
            name="cgmanifest-schema-bot",
            email="cgmanifest-schema-bot@users.noreply.github.com",
        )
    )

    # Text the tracker matches with `in:title`
    title_search_text: str = "cgmanifest.json"

    # False: the first unhandled error aborts the whole run
    continue_on_error: bool = False

    def render_pr_body(self) -> str:
        return self.pr_body_template.read_text(encoding="utf-8")
