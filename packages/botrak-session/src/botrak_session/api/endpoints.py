"""Backend paths used by the session core, relative to the API base URL."""

LOGIN = "/log_in"
LOGOUT = "/logout"
FORGOT_PASSWORD = "/password"
MY_ORGANIZATIONS = "/users/my_organizations"

TOKEN_HEADER = "token"
