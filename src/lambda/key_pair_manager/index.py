'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
Entry point of the Lambda function behind the Custom::EC2-Key-Pair
CloudFormation resource. CloudFormation invokes the function with a Create,
Update or Delete request and then waits until a response is PUT to the
pre-signed ResponseURL of the event. Answering CloudFormation is left to
crhelper: it dispatches the request to the create/update/delete functions
below, sends SUCCESS with the key pair attributes (KeyPairName, KeyPairID,
KeyPairFingerprint, PrivateKeyARN, PublicKeyARN, PublicKeyValue) or FAILED with
the error message, and reports FAILED on its own shortly before the Lambda
deadline. The EC2 and Secrets Manager clients are created once per Lambda
container and reused across invocations.
'''

# Import required AWS SDK and utility libraries
import json
import logging

import boto3
from crhelper import CfnResource

from key_pair_manager.config import load_settings
from key_pair_manager.key_pairs import KeyPairGateway
from key_pair_manager.lifecycle import KeyPairLifecycle
from key_pair_manager.secret_store import SecretStore

# Configure logging for the Lambda function
logger = logging.getLogger()
logger.setLevel(logging.INFO)

helper = CfnResource(json_logging=False, log_level='INFO', boto_level='CRITICAL')

# Reused across invocations of the same container
_lifecycle = None


def get_lifecycle():
    global _lifecycle
    # Invalid settings fail the request instead of leaving the stack waiting
    settings = load_settings()
    logger.setLevel(settings.log_level)

    if _lifecycle is None:
        # Initialize AWS service clients
        _lifecycle = KeyPairLifecycle(
            KeyPairGateway(boto3.client('ec2')),
            SecretStore(boto3.client('secretsmanager')),
            settings,
        )
    return _lifecycle


# Hands the attributes to crhelper and returns the physical resource id
def respond(result):
    helper.Data.update(result.data)
    return result.physical_resource_id


@helper.create
def create(event, context):
    return respond(get_lifecycle().create(event))


@helper.update
def update(event, context):
    return respond(get_lifecycle().update(event))


@helper.delete
def delete(event, context):
    return respond(get_lifecycle().delete(event))


"""
Main Lambda handler function that processes CloudFormation custom resource events
Args:
    event: CloudFormation custom resource event
    context: Lambda context object
"""
def lambda_handler(event, context):
    # Log the request without the pre-signed response URL
    logger.info(
        f"Received {event.get('RequestType')} request for {event.get('LogicalResourceId')}: "
        f"{json.dumps(event.get('ResourceProperties', {}))}"
    )
    # The helper outlives the invocation, attributes of the previous request must not leak
    helper.Data.clear()
    helper(event, context)
