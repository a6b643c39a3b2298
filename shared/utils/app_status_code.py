class AppStatusCode:
    # Success
    DATA_RETRIEVED_SUCCESSFULLY = "200"

    # Generic failures
    OPERATION_FAILED = "1000"
    INVALID_INPUT = "1002"
    RECORD_NOT_FOUND = "1005"
    INVALID_STATE = "1006"
    UNSUPPORTED_OPERATION = "1007"

    # Authentication
    AUTHENTICATION_TOKEN_INVALID = "2001"
    AUTHENTICATION_TOKEN_EXPIRED = "2002"
    AUTHENTICATION_ORG_MISSING = "2003"
    UNAUTHORIZED_ACTION = "2004"
