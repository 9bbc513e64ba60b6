'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
Tag handling shared by the EC2 key pair and both Secrets Manager secrets. Every
resource the function creates carries the stack provenance tags, the
CreatedByCfnCustomResource ownership tag (the IAM policy of the function only
allows mutating resources that carry it) and the user tags from the template.
On Update the previous and the desired tag maps are compared and only the
difference is sent to AWS; identical maps result in no call at all.
'''

# Ownership tag checked by the IAM policy of the Lambda role
CREATED_BY_TAG = 'CreatedByCfnCustomResource'
CREATED_BY_VALUE = 'CFN::Resource::Custom::EC2-Key-Pair'

STACK_ID_TAG = 'aws-cloudformation:stack-id'
STACK_NAME_TAG = 'aws-cloudformation:stack-name'
LOGICAL_ID_TAG = 'aws-cloudformation:logical-id'


"""
Builds the full tag map of a resource
Args:
    event: CloudFormation custom resource event
    resource: parsed KeyPairResource (current or previous properties)
Returns:
    dict of tag key to tag value
"""
def make_tags(event, resource):
    tags = dict(resource.tags)

    # System tags always win over user supplied values
    tags[STACK_ID_TAG] = event.get('StackId', '')
    tags[STACK_NAME_TAG] = resource.stack_name
    tags[LOGICAL_ID_TAG] = event.get('LogicalResourceId', '')
    tags[CREATED_BY_TAG] = CREATED_BY_VALUE
    return tags


"""
Computes which tags have to be set and which removed to go from old to new
Args:
    old_tags: tags currently on the resource
    new_tags: desired tags
Returns:
    (tags_to_add, tags_to_remove) - dict of changed/new tags, sorted list of removed keys
"""
def reconcile_tags(old_tags, new_tags):
    # Nothing changed, nothing to call
    if old_tags == new_tags:
        return {}, []

    tags_to_add = {
        key: value for key, value in new_tags.items()
        if key not in old_tags or old_tags[key] != value
    }
    tags_to_remove = sorted(key for key in old_tags if key not in new_tags)
    return tags_to_add, tags_to_remove


# AWS APIs expect tags as a list of Key/Value pairs
def to_tag_list(tags):
    return [{'Key': key, 'Value': tags[key]} for key in sorted(tags)]
