from rest_framework import generics, filters, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django.db.models import Q
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi


from accounts.permissions import IsFundraiser
from trust_marketplace.exceptions import success
from . import serializers as my_serializers
from .models import Project
from .permissions import IsOwnerFundraiserOrReadOnly


class ProjectListCreateAPIView(generics.ListCreateAPIView):
    """
    GET: list projects open for investment, plus the caller's own projects.
    POST: fundraisers create a project.
    """
    serializer_class = my_serializers.ProjectSerializer
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['title', 'description']
    ordering_fields = ['created_at', 'target_amount', 'current_amount']
    ordering = ['-created_at']

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsFundraiser()]
        return [IsAuthenticated()]

    def get_queryset(self):
        queryset = Project.objects.select_related('fundraiser')
        if self.request.query_params.get('mine') in ('1', 'true'):
            return queryset.filter(fundraiser=self.request.user)
        return queryset.filter(
            Q(status__in=Project.INVESTABLE_STATUSES) | Q(fundraiser=self.request.user)
        )

    @swagger_auto_schema(
        operation_summary="List projects",
        manual_parameters=[
            openapi.Parameter('mine', openapi.IN_QUERY, description="Only the caller's own projects", type=openapi.TYPE_BOOLEAN),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @swagger_auto_schema(
        operation_summary="Create a project",
        request_body=my_serializers.ProjectWriteSerializer,
        responses={201: my_serializers.ProjectSerializer(), 400: "Validation error"}
    )
    def post(self, request, *args, **kwargs):
        serializer = my_serializers.ProjectWriteSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        project = serializer.save()
        return Response(success(my_serializers.ProjectSerializer(project).data), status=status.HTTP_201_CREATED)


class ProjectRetrieveUpdateAPIView(generics.RetrieveUpdateAPIView):
    serializer_class = my_serializers.ProjectSerializer
    permission_classes = [IsAuthenticated, IsOwnerFundraiserOrReadOnly]
    queryset = Project.objects.select_related('fundraiser')
    lookup_field = 'id'

    @swagger_auto_schema(operation_summary="Retrieve a project")
    def get(self, request, *args, **kwargs):
        return Response(success(self.get_serializer(self.get_object()).data))

    @swagger_auto_schema(operation_summary="Update a project", request_body=my_serializers.ProjectWriteSerializer)
    def put(self, request, *args, **kwargs):
        return self._update(request, partial=False)

    @swagger_auto_schema(operation_summary="Partially update a project", request_body=my_serializers.ProjectWriteSerializer)
    def patch(self, request, *args, **kwargs):
        return self._update(request, partial=True)

    def _update(self, request, partial):
        project = self.get_object()
        serializer = my_serializers.ProjectWriteSerializer(
            project, data=request.data, partial=partial, context={'request': request}
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(success(my_serializers.ProjectSerializer(project).data))
