from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    """Username/password credentials.  Extra keys such as ``role`` are ignored."""
    username = serializers.CharField(
        max_length=150,
        error_messages={'required': 'Username is required', 'blank': 'Username is required'},
    )
    password = serializers.CharField(
        max_length=128,
        trim_whitespace=False,
        style={'input_type': 'password'},
        error_messages={'required': 'Password is required', 'blank': 'Password is required'},
    )
