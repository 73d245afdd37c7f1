from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .exceptions import MotDePasseActuelInvalide, UtilisateurExistant

User = get_user_model()


class PreferencesSerializer(serializers.Serializer):
    theme = serializers.ChoiceField(choices=["light", "dark", "auto"], required=False)
    langue = serializers.ChoiceField(choices=["fr", "en"], required=False)
    notifications = serializers.DictField(child=serializers.BooleanField(), required=False)


class UserSerializer(serializers.ModelSerializer):
    """Serializer de lecture pour le profil utilisateur (sans mot de passe)."""

    class Meta:
        model = User
        fields = [
            "id", "email", "nom", "prenom", "role", "permissions", "entreprise",
            "departement", "poste", "telephone", "avatar", "preferences",
            "is_active", "last_login", "date_joined",
        ]
        read_only_fields = fields


class UserBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "nom", "prenom", "email"]


class ProfileSerializer(serializers.ModelSerializer):
    """Mise a jour du profil: seuls les champs personnels sont modifiables."""

    nom = serializers.CharField(min_length=2, max_length=50, required=False)
    prenom = serializers.CharField(min_length=2, max_length=50, required=False)
    preferences = PreferencesSerializer(required=False)

    class Meta:
        model = User
        fields = ["nom", "prenom", "telephone", "departement", "poste", "avatar", "preferences"]

    def update(self, instance, validated_data):
        preferences = validated_data.pop("preferences", None)
        if preferences:
            merged = dict(instance.preferences or {})
            if "notifications" in preferences:
                merged["notifications"] = {**merged.get("notifications", {}), **preferences.pop("notifications")}
            merged.update(preferences)
            instance.preferences = merged
        return super().update(instance, validated_data)


class RegisterSerializer(serializers.ModelSerializer):
    """Serializer d'inscription: crée un utilisateur avec password hashé."""

    password = serializers.CharField(write_only=True, required=True, trim_whitespace=False)
    nom = serializers.CharField(min_length=2, max_length=50)
    prenom = serializers.CharField(min_length=2, max_length=50)
    entreprise = serializers.CharField(min_length=2, max_length=100)

    class Meta:
        model = User
        fields = ["id", "email", "password", "nom", "prenom", "entreprise", "departement", "poste", "role"]
        read_only_fields = ["id"]
        # l'unicite de l'email est verifiee a part pour renvoyer USER_EXISTS
        extra_kwargs = {"email": {"validators": []}}

    def validate_email(self, value: str) -> str:
        value = value.lower()
        if User.objects.filter(email=value).exists():
            raise UtilisateurExistant()
        return value

    def validate_password(self, value: str) -> str:
        validate_password(value)
        return value

    def validate_role(self, value: str) -> str:
        if value == "admin":
            raise serializers.ValidationError("Le rôle admin ne peut pas être choisi à l'inscription")
        return value

    def create(self, validated_data):
        password = validated_data.pop("password")
        return User.objects.create_user(password=password, **validated_data)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)

    def validate_email(self, value: str) -> str:
        return value.lower()


class RefreshSerializer(serializers.Serializer):
    refresh_token = serializers.CharField()


class ChangePasswordSerializer(serializers.Serializer):
    """Serializer pour changer le mot de passe de l'utilisateur connecté."""

    current_password = serializers.CharField(write_only=True, required=True, trim_whitespace=False)
    new_password = serializers.CharField(write_only=True, required=True, trim_whitespace=False)

    def validate(self, attrs):
        user = self.context["request"].user
        if not user.check_password(attrs["current_password"]):
            raise MotDePasseActuelInvalide()
        validate_password(attrs["new_password"], user)
        return attrs

    def save(self, **kwargs):
        user = self.context["request"].user
        user.set_password(self.validated_data["new_password"])
        user.save()
        # toutes les sessions existantes sont invalidees
        user.refresh_tokens.all().delete()
        return user
