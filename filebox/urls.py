from django.urls import path
from . import views

urlpatterns = [
    path('register', views.register, name='register'),
    path('login', views.login, name='login'),
    path('logout', views.logout, name='logout'),
    path('upload', views.file_upload, name='file_upload'),
    path('files', views.file_list, name='file_list'),
    path('files/<str:file_id>', views.file_delete, name='file_delete'),
    path('download/<str:file_id>', views.file_download, name='file_download'),
    path('user', views.user_info, name='user_info'),
]
