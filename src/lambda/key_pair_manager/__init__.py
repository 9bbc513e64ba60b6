'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
Lambda function backing the Custom::EC2-Key-Pair CloudFormation resource. The
handler lives in index.py; the remaining modules hold the key pair lifecycle
(create, update, delete), the EC2 and Secrets Manager wrappers, tag handling
and public key encoding.
'''
