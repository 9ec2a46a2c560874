from enum import Enum


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    CONNECTION_NOT_FOUND = "CONNECTION_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_EVENT_OWNER = "NOT_EVENT_OWNER"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    EVENT_NOT_LIVE = "EVENT_NOT_LIVE"
    EVENT_NOT_DRAFT = "EVENT_NOT_DRAFT"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    ALREADY_JOINED = "ALREADY_JOINED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INVALID_COORDINATES = "INVALID_COORDINATES"
    INVALID_TIME_WINDOW = "INVALID_TIME_WINDOW"
    INVALID_PHOTO = "INVALID_PHOTO"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INTERNAL = "INTERNAL"
