"""Service configuration."""
import os

#################### Token lifetimes ####################
# All durations are in milliseconds. A lifetime of 0 means the token does not
# expire.

TOKEN_LIFETIME_SESSION_WITH_DEVICE = int(os.environ.get(
    'TOKEN_LIFETIME_SESSION_WITH_DEVICE',
    '0'
))
"""Session tokens bound to a device never expire, whatever is set here."""

TOKEN_LIFETIME_SESSION_WITHOUT_DEVICE = int(os.environ.get(
    'TOKEN_LIFETIME_SESSION_WITHOUT_DEVICE',
    str(1000 * 60 * 60 * 24 * 28)
))
"""Four weeks."""

TOKEN_LIFETIME_KEY_FETCH = int(os.environ.get('TOKEN_LIFETIME_KEY_FETCH', '0'))
TOKEN_LIFETIME_PASSWORD_FORGOT = int(os.environ.get(
    'TOKEN_LIFETIME_PASSWORD_FORGOT',
    str(1000 * 60 * 60)
))
TOKEN_LIFETIME_PASSWORD_CHANGE = int(os.environ.get(
    'TOKEN_LIFETIME_PASSWORD_CHANGE',
    str(1000 * 60 * 15)
))
TOKEN_LIFETIME_ACCOUNT_RESET = int(os.environ.get(
    'TOKEN_LIFETIME_ACCOUNT_RESET',
    str(1000 * 60 * 15)
))

TOKEN_ENVELOPE_SECRET = os.environ.get('TOKEN_ENVELOPE_SECRET', 'foosecret')
"""HMAC secret used to sign token metadata envelopes (see
:func:`account_auth.tokens.encode`)."""


#################### Feature gates ####################
# Email patterns are regular expressions, searched (not anchored) against the
# account's primary address. The default ``^$`` matches nothing useful.

LAST_ACCESS_TIME_UPDATES_ENABLED = bool(int(os.environ.get(
    'LAST_ACCESS_TIME_UPDATES_ENABLED', '0'
)))
LAST_ACCESS_TIME_UPDATES_SAMPLE_RATE = float(os.environ.get(
    'LAST_ACCESS_TIME_UPDATES_SAMPLE_RATE', '0'
))
LAST_ACCESS_TIME_UPDATES_EMAIL_ADDRESSES = os.environ.get(
    'LAST_ACCESS_TIME_UPDATES_EMAIL_ADDRESSES', '^$'
)
"""Addresses for which last-access tracking is always on."""

SIGNIN_UNBLOCK_ENABLED = bool(int(os.environ.get('SIGNIN_UNBLOCK_ENABLED', '0')))
SIGNIN_UNBLOCK_SAMPLE_RATE = float(os.environ.get(
    'SIGNIN_UNBLOCK_SAMPLE_RATE', '0'
))
SIGNIN_UNBLOCK_ALLOWED_EMAIL_ADDRESSES = os.environ.get(
    'SIGNIN_UNBLOCK_ALLOWED_EMAIL_ADDRESSES', '^$'
)
SIGNIN_UNBLOCK_FORCED_EMAIL_ADDRESSES = os.environ.get(
    'SIGNIN_UNBLOCK_FORCED_EMAIL_ADDRESSES', '^$'
)
"""Operational override: unblock codes are always offered to these."""

SIGNIN_CONFIRMATION_FORCED_EMAIL_ADDRESSES = os.environ.get(
    'SIGNIN_CONFIRMATION_FORCED_EMAIL_ADDRESSES', '^$'
)
"""Sign-ins for these addresses always need email confirmation."""

SIGNIN_CONFIRMATION_BYPASS_ACCOUNT_WITH_AGE = bool(int(os.environ.get(
    'SIGNIN_CONFIRMATION_BYPASS_ACCOUNT_WITH_AGE', '0'
)))
SIGNIN_CONFIRMATION_ACCOUNT_CREATED_SINCE = int(os.environ.get(
    'SIGNIN_CONFIRMATION_ACCOUNT_CREATED_SINCE',
    str(1000 * 60 * 60 * 24)
))

SECURITY_HISTORY_ENABLED = bool(int(os.environ.get(
    'SECURITY_HISTORY_ENABLED', '1'
)))
SECURITY_HISTORY_IP_PROFILING_ENABLED = bool(int(os.environ.get(
    'SECURITY_HISTORY_IP_PROFILING_ENABLED', '1'
)))
SECURITY_HISTORY_IP_PROFILING_ALLOWED_RECENCY = int(os.environ.get(
    'SECURITY_HISTORY_IP_PROFILING_ALLOWED_RECENCY',
    str(1000 * 60 * 60 * 24 * 3)
))
"""How far back a verified login still vouches for a new one."""


#################### Password reset ####################

PASSWORD_FORGOT_CODE_LENGTH = int(os.environ.get(
    'PASSWORD_FORGOT_CODE_LENGTH', '8'
))
PASSWORD_FORGOT_TRIES = int(os.environ.get('PASSWORD_FORGOT_TRIES', '3'))


#################### Minor configs ##############################

LOGLEVEL = os.environ.get('LOGLEVEL', 'INFO')


def as_policy_config() -> dict:
    """Collect the settings above into the mapping read by the policy layer."""
    return {
        'token_lifetimes': {
            'sessionTokenWithDevice': TOKEN_LIFETIME_SESSION_WITH_DEVICE,
            'sessionTokenWithoutDevice': TOKEN_LIFETIME_SESSION_WITHOUT_DEVICE,
            'keyFetchToken': TOKEN_LIFETIME_KEY_FETCH,
            'passwordForgotToken': TOKEN_LIFETIME_PASSWORD_FORGOT,
            'passwordChangeToken': TOKEN_LIFETIME_PASSWORD_CHANGE,
            'accountResetToken': TOKEN_LIFETIME_ACCOUNT_RESET,
        },
        'last_access_time_updates': {
            'enabled': LAST_ACCESS_TIME_UPDATES_ENABLED,
            'sample_rate': LAST_ACCESS_TIME_UPDATES_SAMPLE_RATE,
            'allowed_email_addresses':
                LAST_ACCESS_TIME_UPDATES_EMAIL_ADDRESSES,
        },
        'signin_unblock': {
            'enabled': SIGNIN_UNBLOCK_ENABLED,
            'sample_rate': SIGNIN_UNBLOCK_SAMPLE_RATE,
            'allowed_email_addresses': SIGNIN_UNBLOCK_ALLOWED_EMAIL_ADDRESSES,
            'forced_email_addresses': SIGNIN_UNBLOCK_FORCED_EMAIL_ADDRESSES,
        },
        'signin_confirmation': {
            'forced_email_addresses':
                SIGNIN_CONFIRMATION_FORCED_EMAIL_ADDRESSES,
            'bypass_account_with_age': {
                'enabled': SIGNIN_CONFIRMATION_BYPASS_ACCOUNT_WITH_AGE,
                'account_created_since_ms':
                    SIGNIN_CONFIRMATION_ACCOUNT_CREATED_SINCE,
            },
        },
        'security_history': {
            'enabled': SECURITY_HISTORY_ENABLED,
            'ip_profiling': {
                'enabled': SECURITY_HISTORY_IP_PROFILING_ENABLED,
                'allowed_recency': SECURITY_HISTORY_IP_PROFILING_ALLOWED_RECENCY,
            },
        },
    }
