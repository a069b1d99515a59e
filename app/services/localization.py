from typing import Optional

from app.models.notification import NotificationContent, NotificationRequest, SECONDARY_LANGUAGE

DEFAULT_HEADING = "NZ Sports Club"

# type -> language -> (heading, body template)
TEMPLATES = {
    "new_workout": {
        "en": ("New Workout", "{title}{schedule}"),
        "bg": ("Нова тренировка", "{title}{schedule}"),
    },
    "workout_updated": {
        "en": ("Workout Updated", "{title} has been updated"),
        "bg": ("Тренировката е актуализирана", "{title} беше обновена"),
    },
    "workout_deleted": {
        "en": ("Workout Cancelled", "{title} has been cancelled"),
        "bg": ("Тренировката е отменена", "{title} беше отменена"),
    },
    "spot_freed": {
        "en": ("Spot Available!", "A spot opened up for {title}"),
        "bg": ("Освободи се място!", "Място се освободи за {title}"),
    },
    "workout_full": {
        "en": ("Workout Full", "{title} is now full"),
        "bg": ("Тренировката е пълна", "{title} вече е запълнена"),
    },
}


def format_schedule(date: Optional[str], time: Optional[str]) -> str:
    """Builds the ' - <date> at <time>' suffix, leaving out whichever part is missing."""
    date_str = f" - {date}" if date else ""
    time_str = f" at {time}" if time else ""
    return f"{date_str}{time_str}"


def get_notification_content(
        notification_type: str,
        title: str,
        title_bg: Optional[str] = None,
        date: Optional[str] = None,
        time: Optional[str] = None,
        language: str = "en",
) -> NotificationContent:
    """
    Maps an event type and a recipient language to a heading/body pair.
    The Bulgarian title is used only for Bulgarian recipients and only when one
    was supplied; dates and times are passed through untranslated.
    """
    is_bg = language == SECONDARY_LANGUAGE
    display_title = title_bg if is_bg and title_bg else title

    by_language = TEMPLATES.get(notification_type)
    if by_language is None:
        return NotificationContent(heading=DEFAULT_HEADING, body=display_title)

    heading, body = by_language[SECONDARY_LANGUAGE if is_bg else "en"]
    return NotificationContent(
        heading=heading,
        body=body.format(title=display_title, schedule=format_schedule(date, time)),
    )


def content_for_request(request: NotificationRequest, language: str = "en") -> NotificationContent:
    return get_notification_content(
        request.type,
        request.workout_title,
        request.workout_title_bg,
        request.workout_date,
        request.workout_time,
        language,
    )
