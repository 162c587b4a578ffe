from django.urls import path

from . import views

app_name = "returns"

urlpatterns = [
    path("", views.my_returns, name="my_returns"),
    path("unread/", views.unread, name="unread"),
    path("eligibility/<uuid:order_id>/", views.eligibility, name="eligibility"),
    path("new/<uuid:order_id>/", views.create, name="create"),

    path("admin/", views.admin_list, name="admin_list"),
    path("admin/unread/", views.admin_unread, name="admin_unread"),
    path("admin/<uuid:request_id>/status/", views.admin_update_status, name="admin_update_status"),

    path("<uuid:request_id>/", views.detail, name="detail"),
    path("<uuid:request_id>/cancel/", views.cancel, name="cancel"),
    path("<uuid:request_id>/delete/", views.delete, name="delete"),
    path("<uuid:request_id>/unread/", views.request_unread, name="request_unread"),
    path("<uuid:request_id>/messages/", views.message_list, name="message_list"),
    path("<uuid:request_id>/messages/send/", views.message_send, name="message_send"),
    path("<uuid:request_id>/messages/read/", views.message_mark_read, name="message_mark_read"),
]
