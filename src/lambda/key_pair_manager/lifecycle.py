'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
The lifecycle of a Custom::EC2-Key-Pair resource. Each CloudFormation request
type maps to one method that runs a fixed sequence of AWS calls and stops at
the first failure:

Create: create or import the EC2 key pair (tagged at creation), store the
private key in Secrets Manager unless the key was imported, derive the public
key when it is stored or exposed, store the public key if requested.

Update: reject changes of Name, KeyType, StorePublicKey, PublicKey and
SecretPrefix before any call is made, then look up the key pair and bring the
tags of the key pair and the metadata and tags of both secrets in line with
the new properties. The stored key material itself never changes.

Delete: remove the key pair and both secrets. Every step tolerates resources
that are already gone, so a Delete sent by CloudFormation after a failed
Create (or a second Delete) still succeeds.

Nothing is rolled back here when a step fails. CloudFormation follows up a
failed Create with a Delete, which cleans up whatever was created.
'''

import logging

from key_pair_manager import key_codec
from key_pair_manager.config import Settings
from key_pair_manager.errors import ImmutableFieldError, KeyPairError
from key_pair_manager.properties import parse_properties
from key_pair_manager.tags import make_tags

logger = logging.getLogger()

PUBLIC_KEY_NOT_REQUESTED = 'Not requested - Set ExposePublicKey to true'


class LifecycleResult:

    def __init__(self, physical_resource_id, key_pair_name='', key_pair_id='',
                 fingerprint='', private_key_arn='', public_key_arn='',
                 public_key_value=PUBLIC_KEY_NOT_REQUESTED):
        self.physical_resource_id = physical_resource_id
        self.data = {
            'KeyPairName': key_pair_name,
            'KeyPairID': key_pair_id,
            'KeyPairFingerprint': fingerprint,
            'PrivateKeyARN': private_key_arn,
            'PublicKeyARN': public_key_arn,
            'PublicKeyValue': public_key_value,
        }


"""
Lists the locked properties that differ between old and new properties
Args:
    old: KeyPairResource built from OldResourceProperties
    new: KeyPairResource built from ResourceProperties
Returns:
    list of property names, empty if nothing locked changed
"""
def changed_immutable_fields(old, new):
    changed = []
    if old.name != new.name:
        changed.append('Name')
    if old.key_type != new.key_type:
        changed.append('KeyType')
    if old.store_public_key != new.store_public_key:
        changed.append('StorePublicKey')
    if old.public_key.strip() != new.public_key.strip():
        changed.append('PublicKey')
    # The secrets are addressed by prefix and name
    if old.secret_prefix != new.secret_prefix:
        changed.append('SecretPrefix')
    return changed


class KeyPairLifecycle:

    def __init__(self, key_pairs, secrets, settings=None):
        # KeyPairGateway and SecretStore, or test doubles with the same methods
        self.key_pairs = key_pairs
        self.secrets = secrets
        self.settings = settings or Settings()

    def parse(self, raw, current=True):
        resource = parse_properties(raw, self.settings)
        # Per resource override of the log level
        if current and resource.log_level is not None:
            logger.setLevel(resource.log_level)
        return resource

    def _public_key_value(self, resource, material):
        # Exposed value of the public key, base64 for the binary wire format
        if not resource.expose_public_key:
            return PUBLIC_KEY_NOT_REQUESTED
        value = key_codec.derive_public_key(material, resource.public_key_format, comment=resource.name)
        return key_codec.to_attribute(value)

    def create(self, event):
        resource = self.parse(event.get('ResourceProperties'))
        logger.info(f"Attempting to create EC2 Key Pair {resource.name}")
        tags = make_tags(event, resource)

        key_pair = self.key_pairs.create_or_import(resource.name, resource.key_type, resource.public_key, tags)
        logger.info(f"Created EC2 Key Pair {key_pair.name} ({key_pair.id})")

        # Imported key pairs have no private key to store
        private_key_arn = ''
        if not resource.is_imported:
            private_key_arn = self.secrets.create(
                resource.private_secret_name,
                key_pair.private_key,
                resource.description,
                resource.kms_private,
                tags,
            )

        material = resource.public_key if resource.is_imported else key_pair.private_key

        public_key_arn = ''
        if resource.store_public_key:
            public_key = key_codec.derive_public_key(material, resource.public_key_format, comment=resource.name)
            public_key_arn = self.secrets.create(
                resource.public_secret_name,
                public_key,
                resource.description,
                resource.kms_public,
                tags,
            )

        return LifecycleResult(
            resource.name,
            key_pair_name=key_pair.name,
            key_pair_id=key_pair.id,
            fingerprint=key_pair.fingerprint,
            private_key_arn=private_key_arn,
            public_key_arn=public_key_arn,
            public_key_value=self._public_key_value(resource, material),
        )

    def update(self, event):
        resource = self.parse(event.get('ResourceProperties'))
        old = self.parse(event.get('OldResourceProperties'), current=False)
        logger.info(f"Attempting to update EC2 Key Pair {old.name}")

        # Locked properties are checked before anything is touched
        changed = changed_immutable_fields(old, resource)
        if changed:
            raise ImmutableFieldError(changed)

        old_tags = make_tags(event, old)
        new_tags = make_tags(event, resource)

        # A key pair cannot be changed, only its tags
        key_pair = self.key_pairs.describe(resource.name)
        self.key_pairs.update_tags(key_pair.id, old_tags, new_tags)

        private_key_arn = ''
        if not resource.is_imported:
            private_key_arn = self.secrets.update(
                resource.private_secret_name,
                resource.description,
                resource.kms_private,
            )
            self.secrets.update_tags(resource.private_secret_name, old_tags, new_tags)

        public_key_arn = ''
        if resource.store_public_key:
            public_key_arn = self.secrets.update(
                resource.public_secret_name,
                resource.description,
                resource.kms_public,
            )
            self.secrets.update_tags(resource.public_secret_name, old_tags, new_tags)

        public_key_value = PUBLIC_KEY_NOT_REQUESTED
        if resource.expose_public_key:
            # The private key only exists in Secrets Manager after creation
            if resource.is_imported:
                material = resource.public_key
            else:
                material = self.secrets.get_value(resource.private_secret_name)
            public_key_value = self._public_key_value(resource, material)

        return LifecycleResult(
            resource.name,
            key_pair_name=key_pair.name,
            key_pair_id=key_pair.id,
            fingerprint=key_pair.fingerprint,
            private_key_arn=private_key_arn,
            public_key_arn=public_key_arn,
            public_key_value=public_key_value,
        )

    def delete(self, event):
        physical_resource_id = event.get('PhysicalResourceId', '')
        try:
            resource = self.parse(event.get('ResourceProperties'))
        except KeyPairError as e:
            # Properties that never passed validation cannot have created anything
            logger.info(f"Skipping delete, resource properties are invalid: {str(e)}")
            return LifecycleResult(physical_resource_id, public_key_value='')

        logger.info(f"Attempting to delete EC2 Key Pair {resource.name}")
        days = resource.remove_key_secrets_after_days

        self.key_pairs.delete(resource.name)
        private_key_arn = self.secrets.delete(resource.private_secret_name, days)
        public_key_arn = self.secrets.delete(resource.public_secret_name, days)

        return LifecycleResult(
            physical_resource_id or resource.name,
            key_pair_name=resource.name,
            private_key_arn=private_key_arn,
            public_key_arn=public_key_arn,
            public_key_value='',
        )
