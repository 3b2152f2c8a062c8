from django.urls import path
from . import views

app_name = 'attachments'

urlpatterns = [
    path('files/<str:coded_string>.<str:extension>', views.file_view, name='file'),
    path('files/<str:coded_string>', views.file_view, name='file-noext'),
    path('resize/<int:id>/<int:width>/<int:height>/<str:filename>', views.resize_image, name='resize'),
    path('filtered/<str:filter_name>/<int:id>/<str:filename>', views.filtered_image, name='filtered'),
]
