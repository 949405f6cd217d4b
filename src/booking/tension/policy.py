"""Tension policy — the stringing shop's rules for a main/cross tension pair.

Tensions are in pounds. Both must sit inside the machine's safe range, and
the cross may equal the main or exceed it by a few pounds, never go below
it. The policy is pure: the cart calls it on every racket change and the
redemption coordinator calls it again at submission, since anything the
client checked cannot be trusted.
"""

from protean.exceptions import ValidationError

from booking.config import settings

MIN_TENSION = 18
MAX_TENSION = 35
MAX_DIFF = 3


class TensionPolicy:
    def __init__(self, min_tension=MIN_TENSION, max_tension=MAX_TENSION, max_diff=MAX_DIFF):
        if min_tension > max_tension:
            raise ValueError("min_tension must not exceed max_tension")
        if max_diff < 0:
            raise ValueError("max_diff cannot be negative")
        self.min_tension = min_tension
        self.max_tension = max_tension
        self.max_diff = max_diff

    @classmethod
    def from_settings(cls, config=settings):
        return cls(
            min_tension=config.min_tension,
            max_tension=config.max_tension,
            max_diff=config.max_tension_diff,
        )

    def errors_for(self, tension_main, tension_cross) -> dict[str, list[str]]:
        """Collect every rule the pair breaks, keyed by field name."""
        errors: dict[str, list[str]] = {}

        for field, value in (("tension_main", tension_main), ("tension_cross", tension_cross)):
            if not _is_whole_pounds(value):
                errors.setdefault(field, []).append("Tension is required and must be a whole number of lbs")
            elif not self.min_tension <= value <= self.max_tension:
                errors.setdefault(field, []).append(
                    f"Tension must be between {self.min_tension} and {self.max_tension} lbs"
                )

        if errors:
            return errors

        diff = tension_cross - tension_main
        if diff < 0:
            errors["tension_cross"] = ["Cross tension cannot be lower than main tension"]
        elif diff > self.max_diff:
            errors["tension_cross"] = [f"Cross tension can exceed main tension by at most {self.max_diff} lbs"]
        return errors

    def validate(self, item) -> None:
        """Raise ValidationError unless ``item``'s tensions satisfy the policy."""
        errors = self.errors_for(item.tension_main, item.tension_cross)
        if errors:
            raise ValidationError(errors)

    def is_valid(self, item) -> bool:
        return not self.errors_for(item.tension_main, item.tension_cross)


def _is_whole_pounds(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


default_policy = TensionPolicy.from_settings()
