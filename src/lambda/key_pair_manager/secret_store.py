'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
Thin wrapper around AWS Secrets Manager for the private and public key secrets
of a key pair. Secrets are created once, together with their tags and KMS key.
Later updates only touch the metadata (description, KMS key) and the tags; the
stored key material is never replaced. The existence check lists secrets
filtered by name because the IAM policy of the function allows ListSecrets on
every secret, while describing a secret that was not created by it is denied.
Deleting honours the retention window of the resource: 0 days removes the
secret right away, 7 to 30 days schedules the deletion. A secret that is
already gone counts as deleted.
'''

import logging

from botocore.exceptions import ClientError

from key_pair_manager.tags import reconcile_tags, to_tag_list

logger = logging.getLogger()

NOT_FOUND_CODES = ('ResourceNotFoundException',)


def _is_not_found(error):
    return error.response.get('Error', {}).get('Code') in NOT_FOUND_CODES


class SecretStore:

    def __init__(self, secretsmanager):
        self.secretsmanager = secretsmanager

    def create(self, name, value, description, kms_key_id, tags):
        logger.info(f"Creating secret {name}")
        params = {
            'Name': name,
            'Description': description,
            'KmsKeyId': kms_key_id,
            'Tags': to_tag_list(tags),
        }
        # Binary key formats are stored as SecretBinary
        if isinstance(value, bytes):
            params['SecretBinary'] = value
        else:
            params['SecretString'] = value

        response = self.secretsmanager.create_secret(**params)
        return response['ARN']

    def update(self, name, description, kms_key_id):
        logger.info(f"Updating secret {name}")
        response = self.secretsmanager.update_secret(
            SecretId=name,
            Description=description,
            KmsKeyId=kms_key_id,
        )
        return response['ARN']

    def get_value(self, name):
        response = self.secretsmanager.get_secret_value(SecretId=name)
        if 'SecretString' in response:
            return response['SecretString']
        return response['SecretBinary']

    def add_tags(self, name, tags):
        if not tags:
            return
        logger.info(f"Adding tags to secret {name}: {sorted(tags)}")
        self.secretsmanager.tag_resource(SecretId=name, Tags=to_tag_list(tags))

    def remove_tags(self, name, keys):
        if not keys:
            return
        logger.info(f"Removing tags from secret {name}: {list(keys)}")
        self.secretsmanager.untag_resource(SecretId=name, TagKeys=list(keys))

    def update_tags(self, name, old_tags, new_tags):
        tags_to_add, tags_to_remove = reconcile_tags(old_tags, new_tags)
        if not tags_to_add and not tags_to_remove:
            logger.info(f"No changes of tags detected for secret {name}. Not attempting any update")
            return
        self.add_tags(name, tags_to_add)
        self.remove_tags(name, tags_to_remove)

    def exists(self, name):
        params = {'Filters': [{'Key': 'name', 'Values': [name]}]}
        try:
            while True:
                response = self.secretsmanager.list_secrets(**params)
                # The name filter matches prefixes, so compare the full name
                for secret in response.get('SecretList', []):
                    if secret.get('Name') == name:
                        return True
                if not response.get('NextToken'):
                    return False
                params['NextToken'] = response['NextToken']
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise

    def delete(self, name, retention_days):
        # Returns the ARN of the deleted secret, or an empty string if it did not exist
        if not self.exists(name):
            logger.info(f"Secret {name} does not exist. Nothing to delete")
            return ''

        params = {'SecretId': name}
        if retention_days > 0:
            logger.info(f"Scheduling deletion of secret {name} in {retention_days} days")
            params['RecoveryWindowInDays'] = retention_days
        else:
            logger.info(f"Deleting secret {name} without recovery")
            params['ForceDeleteWithoutRecovery'] = True

        try:
            response = self.secretsmanager.delete_secret(**params)
        except ClientError as e:
            if not _is_not_found(e):
                raise
            logger.info(f"Secret {name} was already deleted")
            return ''
        return response['ARN']
