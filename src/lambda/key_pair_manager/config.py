'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
Settings of the key pair manager, read from the Lambda environment variables.
LOG_LEVEL sets the default logging level (a resource can still override it
with its LogLevel property), DEFAULT_SECRET_PREFIX and DEFAULT_KMS_KEY fill in
the resource properties the template leaves empty.
'''

import logging
import os

# Level names accepted in LOG_LEVEL and in the LogLevel resource property.
# The numeric values mirror the order used by the CDK construct (ERROR=0 .. DEBUG=3)
LOG_LEVELS = {
    'ERROR': logging.ERROR,
    'WARN': logging.WARNING,
    'WARNING': logging.WARNING,
    'INFO': logging.INFO,
    'DEBUG': logging.DEBUG,
    '0': logging.ERROR,
    '1': logging.WARNING,
    '2': logging.INFO,
    '3': logging.DEBUG,
}


class Settings:

    def __init__(self, log_level=logging.INFO, secret_prefix='ec2-ssh-key/', kms_key_id='alias/aws/secretsmanager'):
        self.log_level = log_level
        self.secret_prefix = secret_prefix
        self.kms_key_id = kms_key_id


def parse_log_level(value):
    # Returns None for values that are not a known level name
    if value is None:
        return None
    return LOG_LEVELS.get(str(value).strip().upper())


def load_settings(environ=None):
    environ = os.environ if environ is None else environ

    log_level = parse_log_level(environ.get('LOG_LEVEL', 'INFO'))
    if log_level is None:
        raise ValueError(f"Invalid LOG_LEVEL: {environ.get('LOG_LEVEL')}")

    return Settings(
        log_level=log_level,
        secret_prefix=environ.get('DEFAULT_SECRET_PREFIX', 'ec2-ssh-key/'),
        kms_key_id=environ.get('DEFAULT_KMS_KEY', 'alias/aws/secretsmanager'),
    )
