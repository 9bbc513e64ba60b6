import functools
import hashlib
import logging
import os

import pytest
from botocore.exceptions import ClientError
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

from key_pair_manager.key_pairs import KeyPairGateway
from key_pair_manager.lifecycle import KeyPairLifecycle
from key_pair_manager.secret_store import SecretStore

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

# crhelper creates its boto3 clients when the handler module is imported
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')

STACK_ID = 'arn:aws:cloudformation:us-east-1:123456789012:stack/test-stack/1234'


def client_error(code, operation):
    return ClientError({'Error': {'Code': code, 'Message': f"{code} raised by test"}}, operation)


@functools.lru_cache(maxsize=None)
def private_key_pem(key_type):
    """Returns private key material the way EC2 hands it out (cached per key type)."""
    if key_type == 'ed25519':
        key = ed25519.Ed25519PrivateKey.generate()
        return key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.OpenSSH,
            serialization.NoEncryption(),
        ).decode('ascii')
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    ).decode('ascii')


@functools.lru_cache(maxsize=None)
def openssh_public_key(key_type):
    material = private_key_pem(key_type).encode()
    if key_type == 'ed25519':
        key = serialization.load_ssh_private_key(material, password=None)
    else:
        key = serialization.load_pem_private_key(material, password=None)
    return key.public_key().public_bytes(
        serialization.Encoding.OpenSSH,
        serialization.PublicFormat.OpenSSH,
    ).decode('ascii')


class RecordingClient:
    """Keeps a log of every API call made against the fake."""

    MUTATING = ()

    def __init__(self):
        self.calls = []

    def record(self, operation, **kwargs):
        self.calls.append((operation, kwargs))

    def count(self, operation):
        return len([c for c in self.calls if c[0] == operation])

    def mutating_calls(self):
        return [c for c in self.calls if c[0] in self.MUTATING]


class FakeEC2(RecordingClient):

    MUTATING = ('create_key_pair', 'import_key_pair', 'create_tags', 'delete_tags', 'delete_key_pair')

    def __init__(self):
        super().__init__()
        self.key_pairs = {}

    def _add(self, name, tag_specifications):
        if name in self.key_pairs:
            raise client_error('InvalidKeyPair.Duplicate', 'CreateKeyPair')
        tags = {}
        for spec in tag_specifications:
            tags.update({t['Key']: t['Value'] for t in spec['Tags']})
        key_pair = {
            'KeyName': name,
            'KeyPairId': f"key-{hashlib.md5(name.encode()).hexdigest()[:17]}",
            'KeyFingerprint': hashlib.sha1(name.encode()).hexdigest(),
            'Tags': tags,
        }
        self.key_pairs[name] = key_pair
        return key_pair

    def _by_id(self, key_pair_id):
        for key_pair in self.key_pairs.values():
            if key_pair['KeyPairId'] == key_pair_id:
                return key_pair
        raise client_error('InvalidKeyPairID.NotFound', 'CreateTags')

    def create_key_pair(self, KeyName, KeyType='rsa', KeyFormat='pem', TagSpecifications=()):
        self.record('create_key_pair', KeyName=KeyName, KeyType=KeyType, KeyFormat=KeyFormat,
                    TagSpecifications=TagSpecifications)
        key_pair = self._add(KeyName, TagSpecifications)
        return {
            'KeyName': KeyName,
            'KeyPairId': key_pair['KeyPairId'],
            'KeyFingerprint': key_pair['KeyFingerprint'],
            'KeyMaterial': private_key_pem(KeyType),
        }

    def import_key_pair(self, KeyName, PublicKeyMaterial, TagSpecifications=()):
        self.record('import_key_pair', KeyName=KeyName, PublicKeyMaterial=PublicKeyMaterial,
                    TagSpecifications=TagSpecifications)
        key_pair = self._add(KeyName, TagSpecifications)
        return {
            'KeyName': KeyName,
            'KeyPairId': key_pair['KeyPairId'],
            'KeyFingerprint': key_pair['KeyFingerprint'],
        }

    def describe_key_pairs(self, Filters=()):
        self.record('describe_key_pairs', Filters=Filters)
        names = []
        for f in Filters:
            if f['Name'] == 'key-name':
                names.extend(f['Values'])
        return {
            'KeyPairs': [
                {
                    'KeyName': kp['KeyName'],
                    'KeyPairId': kp['KeyPairId'],
                    'KeyFingerprint': kp['KeyFingerprint'],
                    'Tags': [{'Key': k, 'Value': v} for k, v in kp['Tags'].items()],
                }
                for name, kp in self.key_pairs.items() if name in names
            ]
        }

    def create_tags(self, Resources, Tags):
        self.record('create_tags', Resources=Resources, Tags=Tags)
        for key_pair_id in Resources:
            self._by_id(key_pair_id)['Tags'].update({t['Key']: t['Value'] for t in Tags})

    def delete_tags(self, Resources, Tags):
        self.record('delete_tags', Resources=Resources, Tags=Tags)
        for key_pair_id in Resources:
            for tag in Tags:
                self._by_id(key_pair_id)['Tags'].pop(tag['Key'], None)

    def delete_key_pair(self, KeyName):
        self.record('delete_key_pair', KeyName=KeyName)
        # EC2 does not complain about unknown key names
        self.key_pairs.pop(KeyName, None)
        return {}


class FakeSecretsManager(RecordingClient):

    MUTATING = ('create_secret', 'update_secret', 'tag_resource', 'untag_resource', 'delete_secret')

    def __init__(self):
        super().__init__()
        self.secrets = {}
        self.deleted = {}

    def _get(self, secret_id, operation):
        if secret_id not in self.secrets:
            raise client_error('ResourceNotFoundException', operation)
        return self.secrets[secret_id]

    def create_secret(self, Name, Description='', KmsKeyId=None, Tags=(), SecretString=None, SecretBinary=None):
        self.record('create_secret', Name=Name, Description=Description, KmsKeyId=KmsKeyId, Tags=Tags,
                    SecretString=SecretString, SecretBinary=SecretBinary)
        if Name in self.secrets:
            raise client_error('ResourceExistsException', 'CreateSecret')
        secret = {
            'ARN': f"arn:aws:secretsmanager:us-east-1:123456789012:secret:{Name}-AbCdEf",
            'Name': Name,
            'Description': Description,
            'KmsKeyId': KmsKeyId,
            'Tags': {t['Key']: t['Value'] for t in Tags},
        }
        if SecretString is not None:
            secret['SecretString'] = SecretString
        if SecretBinary is not None:
            secret['SecretBinary'] = SecretBinary
        self.secrets[Name] = secret
        return {'ARN': secret['ARN'], 'Name': Name}

    def update_secret(self, SecretId, Description='', KmsKeyId=None):
        self.record('update_secret', SecretId=SecretId, Description=Description, KmsKeyId=KmsKeyId)
        secret = self._get(SecretId, 'UpdateSecret')
        secret['Description'] = Description
        secret['KmsKeyId'] = KmsKeyId
        return {'ARN': secret['ARN'], 'Name': SecretId}

    def tag_resource(self, SecretId, Tags):
        self.record('tag_resource', SecretId=SecretId, Tags=Tags)
        self._get(SecretId, 'TagResource')['Tags'].update({t['Key']: t['Value'] for t in Tags})

    def untag_resource(self, SecretId, TagKeys):
        self.record('untag_resource', SecretId=SecretId, TagKeys=TagKeys)
        tags = self._get(SecretId, 'UntagResource')['Tags']
        for key in TagKeys:
            tags.pop(key, None)

    def get_secret_value(self, SecretId):
        self.record('get_secret_value', SecretId=SecretId)
        secret = self._get(SecretId, 'GetSecretValue')
        return {k: v for k, v in secret.items() if k in ('ARN', 'Name', 'SecretString', 'SecretBinary')}

    def list_secrets(self, Filters=(), NextToken=None):
        self.record('list_secrets', Filters=Filters, NextToken=NextToken)
        prefixes = []
        for f in Filters:
            if f['Key'] == 'name':
                prefixes.extend(f['Values'])
        return {
            'SecretList': [
                {'ARN': s['ARN'], 'Name': s['Name']}
                for name, s in self.secrets.items()
                if any(name.startswith(p) for p in prefixes)
            ]
        }

    def delete_secret(self, SecretId, RecoveryWindowInDays=None, ForceDeleteWithoutRecovery=None):
        self.record('delete_secret', SecretId=SecretId, RecoveryWindowInDays=RecoveryWindowInDays,
                    ForceDeleteWithoutRecovery=ForceDeleteWithoutRecovery)
        secret = self._get(SecretId, 'DeleteSecret')
        del self.secrets[SecretId]
        self.deleted[SecretId] = RecoveryWindowInDays or 0
        return {'ARN': secret['ARN'], 'Name': SecretId}


class FakeContext:
    log_stream_name = '2026/10/17/[$LATEST]0123456789abcdef'

    def __init__(self, remaining_ms=180000):
        self.remaining_ms = remaining_ms

    def get_remaining_time_in_millis(self):
        return self.remaining_ms


@pytest.fixture(autouse=True)
def root_log_level():
    # LogLevel properties and crhelper both change the root logger
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)


@pytest.fixture
def ec2():
    return FakeEC2()


@pytest.fixture
def secretsmanager():
    return FakeSecretsManager()


@pytest.fixture
def lifecycle(ec2, secretsmanager):
    return KeyPairLifecycle(KeyPairGateway(ec2), SecretStore(secretsmanager))


@pytest.fixture
def context():
    return FakeContext()


@pytest.fixture
def make_event():
    """Builds a CloudFormation custom resource event with string typed properties."""

    def _make_event(request_type, properties, old_properties=None, physical_resource_id=None):
        event = {
            'RequestType': request_type,
            'ResponseURL': 'https://cloudformation-custom-resource-response-useast1.s3.amazonaws.com/test',
            'StackId': STACK_ID,
            'RequestId': 'c1f7b4a2-0000-4000-8000-000000000000',
            'LogicalResourceId': 'KeyPair',
            'ResourceType': 'Custom::EC2-Key-Pair',
            'ResourceProperties': dict({'StackName': 'test-stack'}, **properties),
        }
        if old_properties is not None:
            event['OldResourceProperties'] = dict({'StackName': 'test-stack'}, **old_properties)
        if physical_resource_id is not None:
            event['PhysicalResourceId'] = physical_resource_id
        return event

    return _make_event
