"""Schedule rule validator."""
from typing import Any, Dict, List, Optional

from farmops.utils.dates import WEEKDAY_NAMES

FREQUENCIES = ["daily", "weekly", "bi-weekly", "monthly"]
FREQUENCY_ALIASES = {"biweekly": "bi-weekly"}


class ScheduleValidator:
    """Validate recurring task schedule rules."""

    @staticmethod
    def normalize_frequency(frequency: Optional[str]) -> Optional[str]:
        if frequency is None:
            return None
        frequency = frequency.strip().lower()
        return FREQUENCY_ALIASES.get(frequency, frequency)

    @staticmethod
    def normalize_days(days_of_week: Optional[List[str]]) -> Optional[List[str]]:
        """Lower-case, de-duplicate and order weekday names Monday first."""
        if days_of_week is None:
            return None
        names = {day.strip().lower() for day in days_of_week if isinstance(day, str)}
        return [name for name in WEEKDAY_NAMES if name in names] + sorted(names - set(WEEKDAY_NAMES))

    @staticmethod
    def validate_schedule(schedule: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a complete schedule rule.

        Args:
            schedule: Mapping with frequency, days_of_week, day_of_month and start_date

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        frequency = ScheduleValidator.normalize_frequency(schedule.get("frequency"))
        if frequency not in FREQUENCIES:
            result["valid"] = False
            result["errors"].append(f"Frequency must be one of: {', '.join(FREQUENCIES)}")
            return result

        days_of_week = schedule.get("days_of_week") or []
        if frequency == "weekly":
            if not days_of_week:
                result["valid"] = False
                result["errors"].append("Weekly schedules require at least one day of the week")
                return result

            unknown = [day for day in days_of_week if str(day).strip().lower() not in WEEKDAY_NAMES]
            if unknown:
                result["valid"] = False
                result["errors"].append(f"Unknown days of week: {', '.join(map(str, unknown))}")
                return result
        elif days_of_week:
            result["warnings"].append(f"days_of_week is ignored for {frequency} schedules")

        if frequency == "bi-weekly" and not schedule.get("start_date"):
            result["valid"] = False
            result["errors"].append("Bi-weekly schedules require a start date")
            return result

        if frequency == "monthly" and schedule.get("day_of_month"):
            result["warnings"].append("Monthly tasks are always generated on the last day of the month")

        return result
