import logging

from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import permissions, status, viewsets
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.generics import CreateAPIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .exceptions import CompteDesactive, CompteVerrouille, IdentifiantsInvalides, RefreshTokenInvalide
from .models import RefreshTokenRecord
from .permissions import GESTIONNAIRES, meme_entreprise, role_requis
from .serializers import (
    ChangePasswordSerializer,
    LoginSerializer,
    ProfileSerializer,
    RefreshSerializer,
    RegisterSerializer,
    UserSerializer,
)
from .throttling import LoginRateThrottle
from .tokens import generer_access_token, generer_tokens

logger = logging.getLogger(__name__)
User = get_user_model()


def _session(user, message: str, code=status.HTTP_200_OK) -> Response:
    access, refresh = generer_tokens(user)
    return Response(
        {
            "success": True,
            "message": message,
            "data": {"user": UserSerializer(user).data, "token": access, "refresh_token": refresh},
        },
        status=code,
    )


class RegisterView(CreateAPIView):
    """Inscription ouverte: crée un utilisateur et renvoie son profil avec ses tokens."""

    serializer_class = RegisterSerializer
    permission_classes = [permissions.AllowAny]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"[auth] nouvel utilisateur {user.email} ({user.entreprise})")
        return _session(user, "Utilisateur créé avec succès", status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    Connexion email / mot de passe.
    - compte verrouille -> 423 (meme avec le bon mot de passe)
    - compte desactive  -> 403
    - echec             -> 401, compteur d'echecs incremente
    """

    permission_classes = [permissions.AllowAny]
    authentication_classes = []
    throttle_classes = [LoginRateThrottle]
    throttle_scope = "login"

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data["email"]

        user = User.objects.filter(email=email).first()
        if user is None:
            raise IdentifiantsInvalides()
        if user.is_locked:
            logger.warning(f"[auth] tentative sur compte verrouillé {email}")
            raise CompteVerrouille()
        if not user.is_active:
            raise CompteDesactive()
        if not user.check_password(serializer.validated_data["password"]):
            user.enregistrer_echec_connexion()
            if user.is_locked:
                logger.warning(f"[auth] compte {email} verrouillé après {user.login_attempts} échecs")
            raise IdentifiantsInvalides()

        user.enregistrer_connexion()
        logger.info(f"[auth] connexion de {email}")
        return _session(user, "Connexion réussie")


class RefreshView(APIView):
    """Emet un nouveau token d'acces si le refresh token est valide et connu."""

    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        raw = serializer.validated_data["refresh_token"]
        try:
            refresh = RefreshToken(raw)
        except TokenError:
            raise RefreshTokenInvalide()

        record = RefreshTokenRecord.objects.select_related("user").filter(token=raw).first()
        if record is None or str(record.user_id) != str(refresh.get("id")) or not record.user.is_active:
            raise RefreshTokenInvalide()

        return Response({
            "success": True,
            "message": "Token rafraîchi avec succès",
            "data": {"token": generer_access_token(refresh, record.user)},
        })


class LogoutView(APIView):
    """Retire le refresh token fourni (ou tous si aucun n'est fourni)."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        raw = (request.data or {}).get("refresh_token")
        tokens = request.user.refresh_tokens.all()
        if raw:
            tokens = tokens.filter(token=raw)
        tokens.delete()
        logger.info(f"[auth] déconnexion de {request.user.email}")
        return Response({"success": True, "message": "Déconnexion réussie"})


class MeView(APIView):
    """Retourne le profil de l'utilisateur courant."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response({"success": True, "data": {"user": UserSerializer(request.user).data}})


class ProfileView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def put(self, request):
        serializer = ProfileSerializer(instance=request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response({
            "success": True,
            "message": "Profil mis à jour avec succès",
            "data": {"user": UserSerializer(user).data},
        })

    patch = put


class ChangePasswordView(APIView):
    """Permet à l'utilisateur connecté de changer son mot de passe."""

    permission_classes = [permissions.IsAuthenticated]

    def put(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"[auth] mot de passe modifié pour {request.user.email}")
        return Response({"success": True, "message": "Mot de passe modifié avec succès"})

    post = put


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """Annuaire des utilisateurs de l'entreprise (admins et managers)."""

    serializer_class = UserSerializer
    permission_classes = [role_requis(*GESTIONNAIRES), meme_entreprise("entreprise")]

    def get_queryset(self):
        qs = User.objects.all()
        user = self.request.user
        if self.action == "list":
            qs = qs.filter(entreprise=user.entreprise)
            search = self.request.query_params.get("search")
            if search:
                qs = qs.filter(
                    Q(nom__icontains=search) | Q(prenom__icontains=search) | Q(email__icontains=search)
                )
            role = self.request.query_params.get("role")
            if role:
                qs = qs.filter(role=role)
        return qs

    def list(self, request, *args, **kwargs):
        data = self.get_serializer(self.get_queryset(), many=True).data
        return Response({"success": True, "users": data, "total": len(data)})

    def retrieve(self, request, *args, **kwargs):
        return Response({"success": True, "data": self.get_serializer(self.get_object()).data})
