"""UI surface state shared between the controllers and the Dash layout."""


class DashUiSurface:
    """Open menu popup and help requests, rendered by the refresh callback."""

    def __init__(self) -> None:
        self.open_popup: str | None = None
        self.help_requests = 0
        self.revision = 0

    def toggle_popup(self, name: str) -> None:
        self.open_popup = None if self.open_popup == name else name
        self.revision += 1

    def hide_popup(self, name: str) -> None:
        if self.open_popup == name:
            self.open_popup = None
            self.revision += 1

    def show_help(self) -> None:
        self.open_popup = None
        self.help_requests += 1
        self.revision += 1
