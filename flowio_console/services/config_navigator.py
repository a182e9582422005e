from __future__ import annotations

from flowio_console.domain.models import ConfigTreeNode
from flowio_console.services.config_tree import ConfigTreeCache, normalize_path
from flowio_console.services.device_api import DeviceApiError
from flowio_console.services.event_log import EventLogService
from flowio_console.services.module_editor import ConfigModuleEditor
from flowio_console.services.panel import MessageSink, PanelController


BREADCRUMB_ROOT = "cfg"


class ConfigTreeNavigator(PanelController):
    """Breadcrumb navigation over the configuration tree.

    A node that is also a module opens it in the editor; otherwise the editor
    is cleared with a hint about whether deeper branches exist.
    """

    panel_name = "flowcfg"

    def __init__(
        self,
        cache: ConfigTreeCache,
        editor: ConfigModuleEditor,
        *,
        events: EventLogService | None = None,
        on_message: MessageSink | None = None,
    ) -> None:
        super().__init__(events=events, on_message=on_message)
        self.cache = cache
        self.editor = editor
        self.segments: list[str] = []
        self.node: ConfigTreeNode | None = None

    @property
    def current_path(self) -> str:
        return "/".join(self.segments)

    @property
    def children(self) -> tuple[str, ...]:
        return self.node.children if self.node is not None else ()

    @property
    def breadcrumbs(self) -> list[str]:
        return [BREADCRUMB_ROOT, *self.segments]

    @property
    def title(self) -> str:
        return " > ".join(self.breadcrumbs)

    def _set_path(self, path: str) -> None:
        normalized = normalize_path(path)
        self.segments = [segment for segment in normalized.split("/") if segment]

    async def render(self, force_reload_current: bool = False) -> None:
        node = await self.cache.fetch_children(self.current_path, force_reload_current)
        self.node = node
        if node.has_exact_module:
            await self.editor.load(self.current_path)
            return
        self.editor.reset("Select a section." if node.children else "No sub-branch available.")

    async def select_child(self, child: str) -> bool:
        name = normalize_path(child)
        if not name:
            return False
        self._set_path(f"{self.current_path}/{name}" if self.segments else name)
        return await self._navigate()

    async def select_breadcrumb(self, depth: int) -> bool:
        """Jump to the crumb at ``depth``; 0 is the root."""
        self.segments = self.segments[: max(0, depth)]
        return await self._navigate()

    async def load_modules(self, force_reload: bool = False) -> bool:
        """(Re)load the current branch, falling back to the root when it is gone."""
        try:
            if force_reload:
                self.cache.invalidate_all()
            try:
                await self.cache.fetch_children(self.current_path, force_reload)
            except DeviceApiError:
                if not self.segments:
                    raise
                self.segments = []
                await self.cache.fetch_children("", force_reload)
            # The branch was just fetched; rendering reuses it.
            await self.render(False)
        except DeviceApiError as exc:
            self._set_message(f"Failed to load branches: {exc}")
            return False
        return True

    async def refresh(self) -> bool:
        return await self.load_modules(force_reload=True)

    async def _navigate(self) -> bool:
        try:
            await self.render(False)
        except DeviceApiError as exc:
            self._set_message(f"Failed to load branches: {exc}")
            return False
        return True
