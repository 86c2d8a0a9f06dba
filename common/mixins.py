from common.audit import create_audit_log_from_request


def scoped_queryset_for_user(queryset, user):
    if not user or not user.is_authenticated:
        return queryset.none()
    return queryset.filter(owner=user)


class OwnedMutationMixin:
    """Scope a viewset to the authenticated owner and audit its mutations.

    The owner is always taken from the request principal; any `owner` sent in
    the payload is ignored because serializers expose it read-only.
    """

    audit_entity = None

    def get_queryset(self):
        return scoped_queryset_for_user(super().get_queryset(), self.request.user)

    def _audit(self, *, action, instance, before_snapshot=None, after_snapshot=None):
        create_audit_log_from_request(
            self.request,
            action=action,
            entity=self.audit_entity,
            entity_id=instance.id,
            before_snapshot=before_snapshot,
            after_snapshot=after_snapshot,
        )

    def perform_create(self, serializer):
        instance = serializer.save(owner=self.request.user)
        self._audit(
            action=f"{self.audit_entity}.create",
            instance=instance,
            after_snapshot=self.get_serializer(instance).data,
        )
        return instance

    def perform_update(self, serializer):
        before_snapshot = self.get_serializer(serializer.instance).data
        instance = serializer.save()
        self._audit(
            action=f"{self.audit_entity}.update",
            instance=instance,
            before_snapshot=before_snapshot,
            after_snapshot=self.get_serializer(instance).data,
        )
        return instance

    def perform_destroy(self, instance):
        before_snapshot = self.get_serializer(instance).data
        self._audit(action=f"{self.audit_entity}.delete", instance=instance, before_snapshot=before_snapshot)
        instance.delete()
