'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
Thin wrapper around the EC2 key pair API. A key pair is either generated by EC2
(the private key material is returned exactly once, at creation) or imported
from an existing OpenSSH public key. Tags are attached in the same call that
creates the key pair, so the key pair never exists without the ownership tag
the IAM policy relies on. Key pairs cannot be modified, so besides creation
only tags can change. Deletion and the existence check treat a missing key
pair as a normal state, which keeps repeated deletes and the cleanup of a
half created resource safe.
'''

import logging

from botocore.exceptions import ClientError

from key_pair_manager.errors import NotFoundError
from key_pair_manager.tags import reconcile_tags, to_tag_list

logger = logging.getLogger()

NOT_FOUND_CODES = ('InvalidKeyPair.NotFound',)


class KeyPairInfo:

    def __init__(self, name, key_pair_id, fingerprint, private_key=None):
        self.name = name
        self.id = key_pair_id
        self.fingerprint = fingerprint
        # Only set right after EC2 generated the key pair
        self.private_key = private_key


def _is_not_found(error):
    return error.response.get('Error', {}).get('Code') in NOT_FOUND_CODES


class KeyPairGateway:

    def __init__(self, ec2):
        self.ec2 = ec2

    def create_or_import(self, name, key_type, public_key, tags):
        tag_specifications = [{
            'ResourceType': 'key-pair',
            'Tags': to_tag_list(tags),
        }]

        if public_key:
            logger.info(f"Importing EC2 Key Pair {name}")
            response = self.ec2.import_key_pair(
                KeyName=name,
                PublicKeyMaterial=public_key.encode('utf-8'),
                TagSpecifications=tag_specifications,
            )
            return KeyPairInfo(response['KeyName'], response['KeyPairId'], response['KeyFingerprint'])

        logger.info(f"Creating EC2 Key Pair {name} of type {key_type.value}")
        response = self.ec2.create_key_pair(
            KeyName=name,
            KeyType=key_type.value,
            KeyFormat='pem',
            TagSpecifications=tag_specifications,
        )
        return KeyPairInfo(
            response['KeyName'],
            response['KeyPairId'],
            response['KeyFingerprint'],
            private_key=response['KeyMaterial'],
        )

    def describe(self, name):
        try:
            response = self.ec2.describe_key_pairs(
                Filters=[{'Name': 'key-name', 'Values': [name]}]
            )
        except ClientError as e:
            if _is_not_found(e):
                raise NotFoundError(f"EC2 Key Pair {name} not found")
            raise

        key_pairs = response.get('KeyPairs', [])
        if len(key_pairs) != 1:
            raise NotFoundError(f"Expected to find exactly one EC2 Key Pair {name}, found {len(key_pairs)}")

        key_pair = key_pairs[0]
        return KeyPairInfo(key_pair['KeyName'], key_pair['KeyPairId'], key_pair.get('KeyFingerprint', ''))

    def exists(self, name):
        try:
            self.describe(name)
        except NotFoundError:
            return False
        return True

    def add_tags(self, key_pair_id, tags):
        if not tags:
            return
        logger.info(f"Adding tags to EC2 Key Pair {key_pair_id}: {sorted(tags)}")
        self.ec2.create_tags(Resources=[key_pair_id], Tags=to_tag_list(tags))

    def remove_tags(self, key_pair_id, keys):
        if not keys:
            return
        logger.info(f"Removing tags from EC2 Key Pair {key_pair_id}: {list(keys)}")
        self.ec2.delete_tags(Resources=[key_pair_id], Tags=[{'Key': key} for key in keys])

    def update_tags(self, key_pair_id, old_tags, new_tags):
        tags_to_add, tags_to_remove = reconcile_tags(old_tags, new_tags)
        if not tags_to_add and not tags_to_remove:
            logger.info(f"No changes of tags detected for EC2 Key Pair {key_pair_id}. Not attempting any update")
            return
        self.add_tags(key_pair_id, tags_to_add)
        self.remove_tags(key_pair_id, tags_to_remove)

    def delete(self, name):
        # Returns False when there was nothing to delete
        if not self.exists(name):
            logger.info(f"EC2 Key Pair {name} does not exist. Nothing to delete")
            return False

        logger.info(f"Deleting EC2 Key Pair {name}")
        try:
            self.ec2.delete_key_pair(KeyName=name)
        except ClientError as e:
            if not _is_not_found(e):
                raise
            logger.info(f"EC2 Key Pair {name} was already deleted")
            return False
        return True
