"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000
SECONDS_PER_MINUTE = 60
MILLISECONDS_PER_MINUTE = MILLISECONDS_PER_SECOND * SECONDS_PER_MINUTE

# Dashboard routes used as notification action links
DASHBOARD_PATH = "/dashboard"
INVOICES_PATH = f"{DASHBOARD_PATH}/invoices"
CUSTOMERS_PATH = f"{DASHBOARD_PATH}/customers"
SETTINGS_PATH = f"{DASHBOARD_PATH}/settings"
