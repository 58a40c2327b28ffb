from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, parser_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from .authentication import extract_bearer_token
from .exceptions import InvalidInput
from .parsers import RawMultipartParser
from .serializers import FileRecordSerializer, UserInfoSerializer
from .services import get_service


def _credentials(request):
    data = request.data
    if not isinstance(data, dict):
        raise InvalidInput('Invalid request')
    return data.get('username'), data.get('password')


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """
    Register a new user account
    """
    username, password = _credentials(request)
    get_service().register(username, password)
    return Response({'message': 'User registered successfully'}, status=status.HTTP_200_OK)


@api_view(['POST'])
@permission_classes([AllowAny])
def login(request):
    """
    Authenticate user and issue a session token
    """
    username, password = _credentials(request)
    token = get_service().login(username, password)
    return Response({
        'message': 'Login successful',
        'token': token,
        'username': username,
    }, status=status.HTTP_200_OK)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def logout(request):
    """
    Drop the caller's session; succeeds even for unknown tokens
    """
    get_service().logout(extract_bearer_token(request))
    return Response({'message': 'Logged out successfully'}, status=status.HTTP_200_OK)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([RawMultipartParser])
def file_upload(request):
    """
    Upload a file from a multipart/form-data body
    """
    parts = request.data if isinstance(request.data, list) else []
    record = get_service().upload(request.user, parts)
    return Response({
        'message': 'File uploaded successfully',
        'file': FileRecordSerializer(record).data,
    }, status=status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def file_list(request):
    """
    List the user's files in upload order
    """
    files = get_service().list_files(request.user)
    return Response({'files': FileRecordSerializer(files, many=True).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def file_download(request, file_id):
    """
    Download file content
    """
    record, handle = get_service().download(request.user, file_id)

    # FileResponse sets Content-Length from the open file
    return FileResponse(
        handle,
        content_type=record.mime_type,
        as_attachment=True,
        filename=record.original_name,
    )


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def file_delete(request, file_id):
    """
    Delete a user file and its stored blob
    """
    get_service().delete(request.user, file_id)
    return Response({'message': 'File deleted successfully'}, status=status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_info(request):
    """
    Get current user's file count and total stored bytes
    """
    serializer = UserInfoSerializer(get_service().user_info(request.user))
    return Response(serializer.data)
