"""Billing-cycle handling for rolling a subscription to its next payment."""

from datetime import date, datetime

from dateutil.relativedelta import relativedelta

from duewatch.db.models import BillingCycle, Subscription
from duewatch.utils.time_utils import payment_date


def cycle_step(billing_cycle: BillingCycle, custom_days: int | None = None) -> relativedelta:
    """The interval between two payments of a billing cycle."""
    if billing_cycle == "weekly":
        return relativedelta(weeks=1)
    elif billing_cycle == "monthly":
        return relativedelta(months=1)
    elif billing_cycle == "yearly":
        return relativedelta(years=1)
    elif billing_cycle == "custom":
        if not custom_days or custom_days < 1:
            raise ValueError("Custom billing cycle needs a positive number of days")
        return relativedelta(days=custom_days)
    raise ValueError(f"Unknown billing cycle: {billing_cycle}")


def get_next_occurrence(
    due_at: datetime, billing_cycle: BillingCycle, custom_days: int | None = None
) -> datetime:
    """Get the payment after due_at.

    Month and year steps clamp to the last day of shorter months
    (Jan 31 -> Feb 28).
    """
    return due_at + cycle_step(billing_cycle, custom_days)


def roll_forward(subscription: Subscription, today: date) -> datetime:
    """Next payment after the current one that is today or later.

    Used when a payment is marked as paid: the current occurrence is always
    skipped, then any occurrences still in the past.
    """
    step = cycle_step(subscription.billing_cycle, subscription.custom_days)
    anchor = subscription.next_payment_date
    periods = 1
    next_due = anchor + step
    while payment_date(next_due) < today:
        periods += 1
        # Step from the anchor so month clamping doesn't accumulate
        next_due = anchor + step * periods
    return next_due
