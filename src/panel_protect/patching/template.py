"""Template Patcher - inject a rendered section into a view template."""

from pathlib import Path

from panel_protect.core.models import Anchor, AnchorPosition, InsertSide, PatchResult
from panel_protect.patching.base import ArtifactPatch, FilePatcher

FORM_CLOSING = Anchor(
    pattern="</form>",
    position=AnchorPosition.LAST,
    side=InsertSide.BEFORE,
)

SECTION_CLOSING = Anchor(
    pattern="@endsection",
    position=AnchorPosition.LAST,
    side=InsertSide.BEFORE,
)


class TemplatePatcher:
    """
    Injects a rendered block before a template's closing boundary.

    The marker is a human-readable section title unique to the injected
    block, so a re-run recognises the section even if its body changed.
    """

    def __init__(self, file_patcher: FilePatcher | None = None):
        self._file_patcher = file_patcher or FilePatcher()

    def inject(
        self,
        template_artifact: Path,
        rendered_block: str,
        marker: str,
        anchor: Anchor = FORM_CLOSING,
        name: str = "template section",
    ) -> PatchResult:
        """
        Inject ``rendered_block`` unless ``marker`` is already in the template.

        Raises:
            ArtifactMissingError: If the template does not exist
        """
        patch = ArtifactPatch(name=name, marker=marker, anchor=anchor, block=rendered_block)
        return self._file_patcher.apply_patch(template_artifact, patch)
