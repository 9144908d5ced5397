PROFILE_LIMIT = 12


class LoopProfiler:
    """Counts taken jump-if-zero transitions per distinct loop body.

    Bodies are keyed by their rendered source (see BytecodeProgram.loop_source),
    so identical loops at different places in a program share one counter.
    """

    def __init__(self):
        self.counts = {}    # body -> count, insertion order kept for ties

    def record(self, body: str):
        self.counts[body] = self.counts.get(body, 0) + 1

    def most_common(self, limit: int | None = None):
        ranked = sorted(self.counts.items(), key=lambda item: item[1], reverse=True)
        if limit is not None:
            ranked = ranked[:limit]
        return ranked

    def report(self, limit: int = PROFILE_LIMIT):
        return [f"{body}, {count}" for body, count in self.most_common(limit)]
