"""Which delivery options a shipping distance allows, and which one to preselect.

Options are grouped by speed. A catalog option with a typed `category` is
grouped by that category; an option without one is grouped by
case-insensitive substring matches on its name.
"""
from typing import FrozenSet, Iterable, List, NamedTuple, Optional, Tuple
from storefront.config.settings import config_settings
from storefront.delivery.models import DeliveryCategory, DeliveryOption


class OptionGroup(NamedTuple):
    categories: FrozenSet[DeliveryCategory]
    name_terms: Tuple[str, ...]


SAME_DAY_GROUP = OptionGroup(frozenset({DeliveryCategory.SAME_DAY, DeliveryCategory.EXPRESS}),
                             ("same day", "express"))
NEXT_DAY_GROUP = OptionGroup(frozenset({DeliveryCategory.NEXT_DAY}),
                             ("next day", "next-day", "tomorrow"))
STANDARD_GROUP = OptionGroup(frozenset({DeliveryCategory.STANDARD}),
                             ("standard", "regular"))


class DeliverySelection(NamedTuple):
    """Outcome of the default-selection policy.

    `changed` is False when the current selection must stay as it is; the
    `option` is then the kept option, or None when there was nothing to keep.
    """
    option: Optional[DeliveryOption]
    changed: bool


def in_group(option: DeliveryOption, group: OptionGroup) -> bool:
    if option.category is not None:
        return option.category in group.categories
    name = option.name.lower()
    return any(term in name for term in group.name_terms)


def is_same_day_distance(distance_km: Optional[float], threshold_km: Optional[float] = None) -> bool:
    if distance_km is None:
        return False
    if threshold_km is None:
        threshold_km = config_settings.SAME_DAY_DISTANCE_KM
    return distance_km < threshold_km


def filter_options(options: Iterable[DeliveryOption], distance_km: Optional[float],
                   threshold_km: Optional[float] = None) -> List[DeliveryOption]:
    """Eligible set for a distance.

    Unknown distance keeps everything. Under the threshold only same day /
    express options qualify, at or above it only standard / regular ones.
    When nothing qualifies every option is returned instead of none.
    """
    options = list(options)
    if not options or distance_km is None:
        return options

    group = SAME_DAY_GROUP if is_same_day_distance(distance_km, threshold_km) else STANDARD_GROUP
    eligible = [o for o in options if in_group(o, group)]
    return eligible if eligible else options


def _first_in(options: List[DeliveryOption], group: OptionGroup) -> Optional[DeliveryOption]:
    return next((o for o in options if in_group(o, group)), None)


def pick_preferred(eligible: List[DeliveryOption], distance_km: Optional[float],
                   threshold_km: Optional[float] = None) -> DeliveryOption:
    if is_same_day_distance(distance_km, threshold_km):
        return _first_in(eligible, SAME_DAY_GROUP) or eligible[0]
    return _first_in(eligible, NEXT_DAY_GROUP) or _first_in(eligible, STANDARD_GROUP) or eligible[0]


def choose_default(eligible: List[DeliveryOption], current_id: Optional[str],
                   distance_km: Optional[float], threshold_km: Optional[float] = None) -> DeliverySelection:
    if eligible:
        if current_id is not None:
            for option in eligible:
                if option.id == current_id:
                    return DeliverySelection(option, False)
        return DeliverySelection(pick_preferred(eligible, distance_km, threshold_km), True)

    # nothing eligible: drop the selection only once the address is known
    if current_id is not None and distance_km is not None:
        return DeliverySelection(None, True)
    return DeliverySelection(None, False)
