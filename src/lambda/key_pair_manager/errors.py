'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
Exceptions raised by the key pair manager. Every error that reaches the
handler is reported back to CloudFormation as a FAILED response carrying the
exception message, so messages are written for the person reading the stack
events.
'''


class KeyPairError(Exception):
    pass


# A resource property is missing or has a value that cannot be parsed
class InvalidPropertyError(KeyPairError):
    pass


# An Update tried to change a property that is locked after creation
class ImmutableFieldError(KeyPairError):

    def __init__(self, fields):
        self.fields = list(fields)
        names = ', '.join(self.fields)
        super().__init__(
            f"The following properties cannot be changed after the key pair was created: {names}. "
            "Please create a new Key Pair instead"
        )


# A describe call matched zero or more than one key pair
class NotFoundError(KeyPairError):
    pass


# The requested public key format is unknown or not defined for the key type
class UnsupportedFormatError(KeyPairError):
    pass
