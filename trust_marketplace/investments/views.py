from rest_framework import generics, permissions, status, views
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema

from accounts.permissions import IsInvestor
from projects.models import Project
from trust_marketplace.exceptions import NotAuthorized, NotFound, success
from . import serializers as my_serializers
from .models import Investment
from .services import InvestmentService


class InvestmentListCreateAPIView(generics.ListCreateAPIView):
    """
    GET: the caller's own investments, newest first (filter with ?status=).
    POST: invest in a project. The amount is clamped to the project's limits.
    """
    serializer_class = my_serializers.InvestmentSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status', 'project']

    def get_permissions(self):
        if self.request.method == 'POST':
            return [permissions.IsAuthenticated(), IsInvestor()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        return Investment.objects.filter(investor=self.request.user).select_related(
            'project', 'investor', 'escrow_contract'
        )

    @swagger_auto_schema(operation_summary="List own investments")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @swagger_auto_schema(
        operation_summary="Create an investment",
        request_body=my_serializers.InvestmentCreateSerializer,
        responses={
            201: my_serializers.InvestmentSerializer(),
            400: "Validation error",
            404: "Project not found",
            409: "Duplicate investment",
            502: "Payment or escrow failure",
        }
    )
    def post(self, request, *args, **kwargs):
        serializer = my_serializers.InvestmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        investment = InvestmentService().create_investment(
            investor=request.user,
            project_id=data['project_id'],
            amount=data['amount'],
            status=data['status'],
            notes=data['notes'],
            payment_method=data['payment_method'],
            release_conditions=data.get('release_conditions'),
        )
        return Response(
            success(my_serializers.InvestmentSerializer(investment).data),
            status=status.HTTP_201_CREATED
        )


class InvestmentDetailAPIView(generics.RetrieveAPIView):
    serializer_class = my_serializers.InvestmentSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'id'

    def get_queryset(self):
        queryset = Investment.objects.select_related('project', 'investor', 'escrow_contract')
        if self.request.user.is_staff:
            return queryset
        return queryset.filter(investor=self.request.user)

    @swagger_auto_schema(operation_summary="Retrieve an investment")
    def get(self, request, *args, **kwargs):
        return Response(success(self.get_serializer(self.get_object()).data))


class InvestmentCancelAPIView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Cancel a pending investment",
        responses={200: my_serializers.InvestmentSerializer(), 403: "Forbidden", 409: "Not pending"}
    )
    def post(self, request, id):
        investment = InvestmentService().cancel_investment(request.user, id)
        return Response(success(my_serializers.InvestmentSerializer(investment).data))


class InvestmentStatusAPIView(views.APIView):
    """Staff moves an investment forward (approve, or escrow the funds)."""
    permission_classes = [permissions.IsAdminUser]

    @swagger_auto_schema(
        operation_summary="Advance an investment's status",
        request_body=my_serializers.InvestmentStatusSerializer,
        responses={200: my_serializers.InvestmentSerializer(), 409: "Transition not allowed"}
    )
    def post(self, request, id):
        serializer = my_serializers.InvestmentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        investment = InvestmentService().advance_status(
            id,
            data['status'],
            payment_method=data['payment_method'],
            release_conditions=data.get('release_conditions'),
        )
        return Response(success(my_serializers.InvestmentSerializer(investment).data))


class ProjectInvestmentListAPIView(generics.ListAPIView):
    """Investments made in one project. Visible to its fundraiser and staff."""
    serializer_class = my_serializers.InvestmentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Investment.objects.none()
        project = Project.objects.filter(pk=self.kwargs['project_id']).first()
        if project is None:
            raise NotFound("Project not found")
        if project.fundraiser_id != self.request.user.id and not self.request.user.is_staff:
            raise NotAuthorized("Only the project's fundraiser can view its investments")
        return Investment.objects.filter(project=project).select_related('project', 'investor', 'escrow_contract')

    @swagger_auto_schema(operation_summary="List investments in a project")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
