def ResponseModel(data, message, code=200):
    return {
        "data": data,
        "code": code,
        "message": message,
    }


def ErrorResponseModel(error, code, message):
    return {"error": error, "code": code, "message": message}


def error_response(response, error):
    """Copy a domain error onto the HTTP response and build its error body."""
    response.status_code = error.status_code
    return ErrorResponseModel(error.title, error.status_code, error.message)
