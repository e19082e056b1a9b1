"""Shared constants: response codes, canned messages, roles and visibility values.

Messages are part of the client contract; the frontend matches on some of them.
"""

from __future__ import annotations


class ResponseCode:
    SUCCESS = 200
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    INTERNAL_SERVER_ERROR = 500


class ResponseMessage:
    # Common
    VALIDATION_ERROR = "Validation Error , Please check the request"
    INTERNAL_ERROR = "Oops! Something went wrong"

    # User
    USER_NOT_FOUND = "User does not exist"
    USER_DETAILS_SUCCESS = "User details fetched successfully"
    USER_DETAILS_ERROR = "Oops! Something went wrong in fetching user details"

    USER_LIST_SUCCESS = "User list fetched successfully"
    USER_LIST_ERROR = "Oops! Something went wrong in fetching user list"

    USER_PUBLIC_LIST_SUCCESS = "Public User list fetched successfully"
    USER_PUBLIC_LIST_ERROR = "Oops! Something went wrong in fetching public user list"

    USER_UPDATE_SUCCESS = "User details updated successfully"
    USER_UPDATE_ERROR = "Oops! Something went wrong in updating user details"

    ASSET_UPLOAD_SUCCESS = "Asset uploaded successfully"
    ASSET_UPLOAD_ERROR = "Oops! Something went wrong in uploading asset"
    FILE_NOT_FOUND = "File not found."
    FILE_TOO_LARGE = "File is too large."

    ACCESS_TOKEN_LOGIN_SUCCESS = "Access token login success"
    ACCESS_TOKEN_LOGIN_ERROR = "Oops! Something went wrong in access token login"

    USER_ALREADY_EXIST = "User already exist"
    USER_REGISTER_SUCCESS = "User registered successfully"
    USER_REGISTER_ERROR = "Oops! Something went wrong in user registration"
    INVALID_CREDENTIALS = "Email or password is incorrect"
    USER_LOGIN_SUCCESS = "User logged in successfully"
    USER_LOGIN_ERROR = "Oops! Something went wrong in user login"

    # Quick saves
    QUICK_SAVE_ADD_SUCCESS = "Added to quick save successfully"
    QUICK_SAVE_ADD_ERROR = "Oops! Something went wrong in adding to quick save"
    QUICK_SAVE_LIST_SUCCESS = "Quick saves fetched successfully"
    QUICK_SAVE_LIST_ERROR = "Oops! Something went wrong in fetching quick saves"
    QUICK_SAVE_DELETE_SUCCESS = "Quick save deleted successfully"
    QUICK_SAVE_DELETE_ERROR = "Oops! Something went wrong in deleting quick save"
    QUICK_SAVE_NOT_FOUND = "Quick save not found"

    # Gate
    ERR_FORBIDDEN = "You are not authorized to access this resource"
    ERR_UNAUTHORIZED = "Please login to access this resource"


ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

VISIBILITY_PUBLIC = "public"
VISIBILITY_PRIVATE = "private"
VISIBILITIES = (VISIBILITY_PUBLIC, VISIBILITY_PRIVATE)

DEFAULT_BIO = "A user from the platform"

PROVIDER_GOOGLE = "google"
PROVIDER_GITHUB = "github"
PROVIDER_TELEGRAM = "telegram"

# Provider name -> users column holding that provider's account id.
PROVIDER_ID_COLUMNS = {
    PROVIDER_GOOGLE: "google_id",
    PROVIDER_GITHUB: "github_id",
    PROVIDER_TELEGRAM: "telegram_id",
}

# Paging bounds for every list endpoint. Keeps the SQL OFFSET inside a 64-bit integer.
MAX_PAGE = 1_000_000
MAX_LIMIT = 100
