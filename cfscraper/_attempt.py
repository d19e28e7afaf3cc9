"""Per-request state for the challenge loop."""


class AttemptState:
    """State owned by one logical request while it works through challenges.

    ``loop_count`` counts consecutive challenge resolutions and is
    checked against ``solve_depth`` before each new one. It is reset
    whenever a plain response (no Location, not 429/503) comes back.
    """

    def __init__(
        self,
        method: str,
        url: str,
        kwargs: dict,
        solve_depth: int = 3,
        internal_retry: bool = False,
        managed_proxy: str | None = None,
    ):
        self.method = method
        self.url = url
        self.kwargs = kwargs
        self.solve_depth = solve_depth
        self.internal_retry = internal_retry
        # Proxy picked by the ProxyManager, scored on every dispatch.
        self.managed_proxy = managed_proxy
        self.loop_count = 0
        self.doubled_down = False
        # Set after a challenge submission; its Location is followed.
        self.submit_url: str | None = None

    @property
    def can_solve(self) -> bool:
        return self.loop_count < self.solve_depth

    def use_solve(self) -> None:
        self.loop_count += 1

    def reset_loop(self) -> None:
        self.loop_count = 0
