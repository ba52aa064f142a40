"""PicSchedule: turn a photo of a schedule, flyer or ticket into calendar events."""
