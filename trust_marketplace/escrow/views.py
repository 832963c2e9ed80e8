from rest_framework import generics, permissions, status, views
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from trust_marketplace.exceptions import success
from .serializers import (
	EscrowContractSerializer,
	EscrowDisputeSerializer,
	EscrowLockSerializer,
)
from .services import EscrowService


ESCROW_ID_PARAM = openapi.Parameter(
	'pk',
	openapi.IN_PATH,
	description="Escrow contract ID",
	type=openapi.TYPE_INTEGER,
)


class EscrowContractListView(generics.ListAPIView):
	"""List all escrows relevant to the authenticated user."""

	serializer_class = EscrowContractSerializer
	permission_classes = [permissions.IsAuthenticated]
	filterset_fields = ["status", "is_locked", "project"]

	@swagger_auto_schema(
		operation_summary="List escrow contracts for the current user",
		responses={200: EscrowContractSerializer(many=True)}
	)
	def get(self, request, *args, **kwargs):
		return super().get(request, *args, **kwargs)

	def get_queryset(self):
		return EscrowService.visible_to(self.request.user).prefetch_related("events")


class EscrowContractDetailView(views.APIView):
	permission_classes = [permissions.IsAuthenticated]

	@swagger_auto_schema(
		operation_summary="Retrieve a specific escrow contract",
		manual_parameters=[ESCROW_ID_PARAM],
		responses={200: EscrowContractSerializer(), 404: "Not found"}
	)
	def get(self, request, pk):
		escrow = EscrowService().get_escrow_for_user(request.user, pk)
		return Response(success(EscrowContractSerializer(escrow).data))


class EscrowByInvestmentView(views.APIView):
	permission_classes = [permissions.IsAuthenticated]

	@swagger_auto_schema(
		operation_summary="Retrieve the escrow holding an investment",
		responses={200: EscrowContractSerializer(), 404: "Not found"}
	)
	def get(self, request, investment_id):
		escrow = EscrowService().get_by_investment(request.user, investment_id)
		return Response(success(EscrowContractSerializer(escrow).data))


class EscrowReleaseFundsView(views.APIView):
	permission_classes = [permissions.IsAuthenticated]

	@swagger_auto_schema(
		operation_summary="Release escrowed funds to the fundraiser",
		manual_parameters=[ESCROW_ID_PARAM],
		request_body=openapi.Schema(type=openapi.TYPE_OBJECT, properties={}),
		responses={
			200: EscrowContractSerializer(),
			403: "Forbidden",
			404: "Not found",
			409: "Escrow is not active or is locked",
		}
	)
	def post(self, request, pk):
		escrow = EscrowService().release(request.user, pk)
		return Response(success(EscrowContractSerializer(escrow).data), status=status.HTTP_200_OK)


class EscrowRefundView(views.APIView):
	permission_classes = [permissions.IsAuthenticated]

	@swagger_auto_schema(
		operation_summary="Refund escrowed funds to the investor",
		manual_parameters=[ESCROW_ID_PARAM],
		request_body=openapi.Schema(type=openapi.TYPE_OBJECT, properties={}),
		responses={
			200: EscrowContractSerializer(),
			403: "Forbidden",
			404: "Not found",
			409: "Escrow cannot be refunded",
		}
	)
	def post(self, request, pk):
		escrow = EscrowService().refund(request.user, pk)
		return Response(success(EscrowContractSerializer(escrow).data), status=status.HTTP_200_OK)


class EscrowDisputeView(views.APIView):
	permission_classes = [permissions.IsAuthenticated]

	@swagger_auto_schema(
		operation_summary="Open a dispute and lock the escrow",
		manual_parameters=[ESCROW_ID_PARAM],
		request_body=EscrowDisputeSerializer,
		responses={200: EscrowContractSerializer(), 404: "Not found", 409: "Already disputed"}
	)
	def post(self, request, pk):
		serializer = EscrowDisputeSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		escrow = EscrowService().raise_dispute(request.user, pk, serializer.validated_data["reason"])
		return Response(success(EscrowContractSerializer(escrow).data), status=status.HTTP_200_OK)


class EscrowLockToggleView(views.APIView):
	permission_classes = [permissions.IsAdminUser]

	@swagger_auto_schema(
		operation_summary="Lock or unlock an escrow contract",
		manual_parameters=[ESCROW_ID_PARAM],
		request_body=EscrowLockSerializer,
		responses={200: EscrowLockSerializer(), 403: "Forbidden", 404: "Not found"}
	)
	def patch(self, request, pk):
		serializer = EscrowLockSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		escrow = EscrowService().set_lock(pk, serializer.validated_data["is_locked"])
		return Response(success(serializer.to_representation(escrow)), status=status.HTTP_200_OK)


class EscrowSyncView(views.APIView):
	"""Staff: apply contract events the mirror has missed."""
	permission_classes = [permissions.IsAdminUser]

	@swagger_auto_schema(
		operation_summary="Sync an escrow with the contract",
		manual_parameters=[ESCROW_ID_PARAM],
		request_body=openapi.Schema(type=openapi.TYPE_OBJECT, properties={}),
		responses={200: EscrowContractSerializer(), 403: "Forbidden", 404: "Not found"}
	)
	def post(self, request, pk):
		escrow = EscrowService().sync_escrow(pk)
		return Response(success(EscrowContractSerializer(escrow).data), status=status.HTTP_200_OK)
