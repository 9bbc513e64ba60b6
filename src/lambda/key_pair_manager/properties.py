'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
Parsing of the ResourceProperties of a Custom::EC2-Key-Pair resource.
CloudFormation passes every property value to the Lambda function as a string,
booleans included ("true"/"false"). parse_properties() converts that flat map
into a KeyPairResource right when the event is received and rejects malformed
values there, so the lifecycle code further down only ever deals with typed
and validated values. Defaults for omitted properties come from the settings
(secret prefix, KMS key) or mirror the defaults of the CDK construct.
'''

import re

from key_pair_manager import key_codec
from key_pair_manager.config import Settings, parse_log_level
from key_pair_manager.errors import InvalidPropertyError

# Valid characters include _, -, a-z, A-Z, and 0-9
NAME_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,255}$')

TRUE_VALUES = ('true', '1', 'yes')
FALSE_VALUES = ('false', '0', 'no', '')


class KeyPairResource:

    def __init__(self, name, key_type=key_codec.KeyType.RSA,
                 public_key_format=key_codec.PublicKeyFormat.OPENSSH, public_key='',
                 store_public_key=False, expose_public_key=False, secret_prefix='ec2-ssh-key/',
                 description='', kms_private='alias/aws/secretsmanager',
                 kms_public='alias/aws/secretsmanager', remove_key_secrets_after_days=0,
                 stack_name='', tags=None, log_level=None):
        self.name = name
        self.key_type = key_type
        self.public_key_format = public_key_format
        self.public_key = public_key
        self.store_public_key = store_public_key
        self.expose_public_key = expose_public_key
        self.secret_prefix = secret_prefix
        self.description = description
        self.kms_private = kms_private
        self.kms_public = kms_public
        self.remove_key_secrets_after_days = remove_key_secrets_after_days
        self.stack_name = stack_name
        self.tags = dict(tags or {})
        self.log_level = log_level

    # An imported key pair never has a private key stored by this function
    @property
    def is_imported(self):
        return bool(self.public_key)

    @property
    def private_secret_name(self):
        return f"{self.secret_prefix}{self.name}/private"

    @property
    def public_secret_name(self):
        return f"{self.secret_prefix}{self.name}/public"

    def __repr__(self):
        return (
            f"KeyPairResource(name={self.name!r}, key_type={self.key_type.value!r}, "
            f"public_key_format={self.public_key_format.value!r}, imported={self.is_imported})"
        )


def _parse_bool(name, value):
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise InvalidPropertyError(f"Property {name} must be 'true' or 'false'. Got '{value}'")


def _parse_days(value):
    try:
        days = int(str(value).strip() or 0)
    except ValueError:
        raise InvalidPropertyError(f"Property RemoveKeySecretsAfterDays must be a number. Got '{value}'")
    if days < 0 or 0 < days < 7 or days > 30:
        raise InvalidPropertyError(f"Property RemoveKeySecretsAfterDays must be 0 or between 7 and 30. Got {days}")
    return days


def _parse_tags(value):
    if not value:
        return {}
    # CDK renders MAP tags as an object, raw templates may use a Key/Value list
    if isinstance(value, list):
        try:
            return {str(tag['Key']): str(tag['Value']) for tag in value}
        except (KeyError, TypeError):
            raise InvalidPropertyError('Property Tags must be a map or a list of Key/Value pairs')
    if isinstance(value, dict):
        return {str(key): str(tag_value) for key, tag_value in value.items()}
    raise InvalidPropertyError('Property Tags must be a map or a list of Key/Value pairs')


def _parse_public_key(value):
    public_key = str(value or '').strip()
    if not public_key:
        return ''
    if '\n' in public_key or not public_key.startswith('ssh-'):
        raise InvalidPropertyError('Property PublicKey must be a public key in OpenSSH format')
    # Fails with InvalidPropertyError if the key cannot be read
    key_codec.load_key(public_key)
    return public_key


"""
Converts the raw ResourceProperties of an event into a KeyPairResource
Args:
    raw: ResourceProperties / OldResourceProperties map from the event
    settings: Settings providing the defaults of omitted properties
Returns:
    KeyPairResource
"""
def parse_properties(raw, settings=None):
    settings = settings or Settings()
    if not isinstance(raw, dict):
        raise InvalidPropertyError('ResourceProperties missing')

    name = str(raw.get('Name', '')).strip()
    if not NAME_PATTERN.match(name):
        raise InvalidPropertyError(
            f"Property Name must be 1 to 255 characters of _, -, a-z, A-Z and 0-9. Got '{name}'"
        )

    key_type = key_codec.parse_key_type(raw.get('KeyType') or key_codec.KeyType.RSA.value)
    public_key_format = key_codec.parse_format(
        raw.get('PublicKeyFormat') or key_codec.PublicKeyFormat.OPENSSH.value
    )
    public_key = _parse_public_key(raw.get('PublicKey'))

    # Reject impossible combinations before anything is created.
    # For imported keys the type of the supplied key decides
    if public_key:
        key_codec.check_format(key_codec.key_type_of(key_codec.load_key(public_key)), public_key_format)
    else:
        key_codec.check_format(key_type, public_key_format)

    log_level = None
    if raw.get('LogLevel') not in (None, ''):
        log_level = parse_log_level(raw['LogLevel'])
        if log_level is None:
            raise InvalidPropertyError(f"Property LogLevel is invalid. Got '{raw['LogLevel']}'")

    return KeyPairResource(
        name=name,
        key_type=key_type,
        public_key_format=public_key_format,
        public_key=public_key,
        store_public_key=_parse_bool('StorePublicKey', raw.get('StorePublicKey', 'false')),
        expose_public_key=_parse_bool('ExposePublicKey', raw.get('ExposePublicKey', 'false')),
        secret_prefix=raw.get('SecretPrefix') or settings.secret_prefix,
        description=str(raw.get('Description') or ''),
        kms_private=raw.get('KmsPrivate') or settings.kms_key_id,
        kms_public=raw.get('KmsPublic') or settings.kms_key_id,
        remove_key_secrets_after_days=_parse_days(raw.get('RemoveKeySecretsAfterDays', 0)),
        stack_name=str(raw.get('StackName') or ''),
        tags=_parse_tags(raw.get('Tags')),
        log_level=log_level,
    )
