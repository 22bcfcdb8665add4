from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class MonthKey:
    year: int
    month: int

    @classmethod
    def of(cls, day: date) -> "MonthKey":
        return cls(day.year, day.month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def display_label(self) -> str:
        return self.start.strftime("%b %y")

    def shift(self, count: int) -> "MonthKey":
        month_index = (self.year * 12) + (self.month - 1) + count
        return MonthKey(month_index // 12, (month_index % 12) + 1)


def trailing_months(today: date, count: int) -> list[MonthKey]:
    """The ``count`` months ending with the month of ``today``, oldest first."""
    current = MonthKey.of(today)
    return [current.shift(-offset) for offset in range(count - 1, -1, -1)]
