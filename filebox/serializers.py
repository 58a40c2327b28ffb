from rest_framework import serializers


class FileRecordSerializer(serializers.Serializer):
    """
    Serializer for a user's file record
    """
    id = serializers.CharField(read_only=True)
    originalName = serializers.CharField(source='original_name', read_only=True)
    storageName = serializers.CharField(source='storage_name', read_only=True)
    size = serializers.IntegerField(read_only=True)
    uploadedAt = serializers.CharField(source='uploaded_at', read_only=True)
    mimeType = serializers.CharField(source='mime_type', read_only=True)


class UserInfoSerializer(serializers.Serializer):
    """
    Serializer for user storage statistics (/api/user)
    """
    username = serializers.CharField()
    fileCount = serializers.IntegerField()
    totalSize = serializers.IntegerField()
