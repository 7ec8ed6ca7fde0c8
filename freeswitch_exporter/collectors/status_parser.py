"""Parser for the free-text ``api status`` reply."""

from typing import List, Pattern

from ..utils.errors import StatusPatternMismatchError


class StatusParser:
    """Runs the status pattern once over a status reply and exposes the groups."""

    def __init__(self, pattern: Pattern):
        """
        Initialize status parser.

        Args:
            pattern: Compiled multi-group status pattern
        """
        self.pattern = pattern

    def parse(self, text: str) -> List[str]:
        """
        Extract the captured groups from a status reply.

        Args:
            text: Decoded body of the status command

        Returns:
            List[str]: Captured groups in pattern order (index 0 is group 1)

        Raises:
            StatusPatternMismatchError: If the pattern matches zero or several times

        Example status text:
            15 session(s) since startup
            2 session(s) - peak 5, last 5min 3
            0 session(s) per Sec out of max 30, peak 4, last 5min 1
            1000 session(s) max
            min idle cpu 0.00/98.33
        """
        matches = list(self.pattern.finditer(text))
        if len(matches) != 1:
            raise StatusPatternMismatchError(len(matches))
        return list(matches[0].groups())
